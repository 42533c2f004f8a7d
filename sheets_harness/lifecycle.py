"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of Sheets Harness, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Lifecycle of the shared Sheets API test server.

One :class:`MockServerLifecycle` owns at most one running server. The first
``get_or_create`` call performs the expensive sequence (options, port,
keystore, TLS listener) under a lock; later calls return the same server.
The server is never stopped: its daemon thread and bound port last until the
process exits.
"""

import threading

from sheets_harness.core.config import HarnessSettings, load_sheets_options
from sheets_harness.core.logging import get_logger, log_operation
from sheets_harness.exceptions import ServerStartupError
from sheets_harness.keystore import ensure_keystore
from sheets_harness.ports import find_available_tcp_port
from sheets_harness.server_assert import assert_that_sheets_api
from sheets_harness.sheets_api_server import SheetsApiTestServer

logger = get_logger(__name__)


class MockServerLifecycle:
    """Lazily created, shared handle to the Sheets API test server."""

    def __init__(self, settings: HarnessSettings):
        self.settings = settings
        self._server: SheetsApiTestServer | None = None
        self._lock = threading.Lock()

    @property
    def server(self) -> SheetsApiTestServer | None:
        """The server if it has been created, else None."""
        return self._server

    @property
    def port(self) -> int:
        """Port of the shared server, creating the server if needed."""
        return self.get_or_create().port

    def get_or_create(self) -> SheetsApiTestServer:
        """
        Return the shared server, building and starting it on first use.

        Returns:
            The running server

        Raises:
            ConfigurationError: If the options file is unreadable or incomplete
            ServerStartupError: If the keystore, port or listener cannot be set up
        """
        server = self._server
        if server is not None:
            return server

        with self._lock:
            if self._server is None:
                self._server = self._create_server()
            return self._server

    def _create_server(self) -> SheetsApiTestServer:
        settings = self.settings
        with log_operation(logger, "Sheets API test server startup"):
            # Configuration errors are reported as such
            options = load_sheets_options(settings.options_file)

            try:
                port = find_available_tcp_port(host=settings.bind_address)
                ensure_keystore(
                    settings.keystore_path,
                    settings.keystore_password,
                    generate=settings.generate_keystore,
                )
                server = SheetsApiTestServer(
                    port=port,
                    keystore_path=settings.keystore_path,
                    keystore_password=settings.keystore_password,
                    client_id=options.client_id,
                    client_secret=options.client_secret,
                    access_token=options.access_token,
                    refresh_token=options.refresh_token,
                    host=settings.host,
                    bind_address=settings.bind_address,
                    timeout=settings.startup_timeout,
                )
                server.start()
                assert_that_sheets_api(server).is_running()
            except ServerStartupError:
                raise
            except Exception as e:
                raise ServerStartupError(f"Sheets API test server could not be started: {e}") from e

        logger.info(f"Sheets API test server available at {server.base_url}")
        return server

    def init(self) -> None:
        """Put the shared server into a clean state before a test."""
        self.get_or_create().init()

    def reset(self) -> None:
        """Clear state recorded on the shared server during a test."""
        self.get_or_create().reset()
