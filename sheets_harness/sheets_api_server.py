"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of Sheets Harness, licensed under the MIT License.
See LICENSE file for details.
"""

"""
HTTPS test server for the simulated Google Sheets API.

The server wraps a :class:`SheetsMockServer` in a FastAPI application and
serves it with uvicorn over TLS on a background thread, using the key
material from the harness keystore.
"""

import json
import logging
import shutil
import tempfile
import threading
import time
from pathlib import Path
from typing import Any
from urllib.parse import parse_qsl

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from sheets_harness.exceptions import ServerStartupError
from sheets_harness.keystore import load_keystore
from sheets_harness.sheets_mock_server import SheetsMockServer

logger = logging.getLogger("sheets_harness.sheets_api_server")


class SheetsApiTestServer:
    """
    Local HTTPS server that simulates the Google Sheets API.

    The server is created stopped; call :meth:`start` to begin serving. It
    accepts the configured access token, or tokens it issued from the
    configured refresh token, as bearer credentials.
    """

    def __init__(
        self,
        port: int,
        keystore_path: str | Path,
        keystore_password: str,
        client_id: str,
        client_secret: str,
        access_token: str,
        refresh_token: str,
        host: str = "localhost",
        bind_address: str = "127.0.0.1",
        timeout: float = 5.0,
    ):
        """
        Initialize the test server.

        Args:
            port: TCP port to listen on
            keystore_path: PKCS#12 keystore holding the TLS identity
            keystore_password: Password of the keystore
            client_id: OAuth client id accepted by the token endpoint
            client_secret: OAuth client secret accepted by the token endpoint
            access_token: Bearer token accepted by the API
            refresh_token: Refresh token accepted by the token endpoint
            host: Host name clients use to reach the server
            bind_address: Interface to bind to
            timeout: Seconds to wait for startup and shutdown
        """
        self.port = port
        self.keystore_path = Path(keystore_path)
        self.keystore_password = keystore_password
        self.host = host
        self.bind_address = bind_address
        self.timeout = timeout

        self.api = SheetsMockServer(
            client_id=client_id,
            client_secret=client_secret,
            access_token=access_token,
            refresh_token=refresh_token,
        )
        self.app = FastAPI(title="Sheets API Simulation Server")

        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None
        self._workdir: Path | None = None

        self._setup_routes()

    def _setup_routes(self) -> None:
        """Set up the health check and the catch-all API route."""

        @self.app.get("/health")
        def health_check():
            """Health check endpoint."""
            return {"status": "ok"}

        @self.app.api_route("/{path:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
        async def catch_all(request: Request, path: str):
            """
            Forward a request to the simulated API.

            Args:
                request: The FastAPI request object
                path: The API path

            Returns:
                JSON response
            """
            logger.debug(f"Request: {request.method} /{path}")

            params: dict[str, Any] = {}
            for key, value in request.query_params.multi_items():
                if key in params:
                    existing = params[key]
                    params[key] = [*existing, value] if isinstance(existing, list) else [existing, value]
                else:
                    params[key] = value

            body: dict[str, Any] = {}
            body_bytes = await request.body()
            if body_bytes:
                content_type = request.headers.get("content-type", "")
                if content_type.startswith("application/x-www-form-urlencoded"):
                    body = dict(parse_qsl(body_bytes.decode("utf-8")))
                else:
                    try:
                        body = json.loads(body_bytes)
                    except json.JSONDecodeError:
                        error = self.api.format_error_response("Invalid JSON payload received.", 400)
                        return JSONResponse(status_code=400, content=error)

            response_data, status_code = self.api.handle_request(
                request.method, path, params, body, dict(request.headers)
            )
            return JSONResponse(status_code=status_code, content=response_data)

    @property
    def base_url(self) -> str:
        """Root URL clients are redirected to."""
        return f"https://{self.host}:{self.port}/"

    def start(self) -> None:
        """
        Start serving on a background thread and wait until the server is up.

        Raises:
            KeystoreError: If the keystore cannot be loaded
            ServerStartupError: If the server does not come up within the timeout
        """
        if self.is_running():
            return

        identity = load_keystore(self.keystore_path, self.keystore_password)
        self._workdir = Path(tempfile.mkdtemp(prefix="sheets-harness-"))
        certfile, keyfile = identity.write_server_files(self._workdir, self.keystore_password)

        config = uvicorn.Config(
            self.app,
            host=self.bind_address,
            port=self.port,
            ssl_certfile=str(certfile),
            ssl_keyfile=str(keyfile),
            ssl_keyfile_password=self.keystore_password,
            log_config=None,
            log_level="warning",
            access_log=False,
            lifespan="off",
        )
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(
            target=self._server.run, name=f"sheets-api-server-{self.port}", daemon=True
        )
        self._thread.start()

        deadline = time.monotonic() + self.timeout
        while not self._server.started:
            if not self._thread.is_alive():
                self._cleanup()
                raise ServerStartupError(
                    f"Sheets API test server failed to start on {self.bind_address}:{self.port}"
                )
            if time.monotonic() > deadline:
                self._server.should_exit = True
                self._cleanup()
                raise ServerStartupError(
                    f"Sheets API test server did not start within {self.timeout}s"
                )
            time.sleep(0.05)

        logger.info(f"Sheets API test server running at {self.base_url}")

    def stop(self) -> None:
        """Stop serving and remove the temporary TLS files."""
        if self._server is not None:
            self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(self.timeout)
        self._server = None
        self._thread = None
        self._cleanup()
        logger.info(f"Sheets API test server on port {self.port} stopped")

    def _cleanup(self) -> None:
        if self._workdir is not None:
            shutil.rmtree(self._workdir, ignore_errors=True)
            self._workdir = None

    def is_running(self) -> bool:
        """Check whether the server is accepting requests."""
        return (
            self._server is not None
            and self._thread is not None
            and self._server.started
            and not self._server.should_exit
            and self._thread.is_alive()
        )

    def init(self) -> None:
        """Prepare the server for a test."""
        self.api.init()

    def reset(self) -> None:
        """Clear expectations and recorded requests after a test."""
        self.api.reset()

    def expect(
        self, method: str, path: str, response: dict[str, Any], status_code: int = 200
    ) -> None:
        """Configure a canned response for an exact method and path."""
        self.api.expect(method, path, response, status_code)

    def get_requests(self, method: str | None = None, path: str | None = None) -> list[dict[str, Any]]:
        """Get recorded requests, optionally filtered by method and path pattern."""
        return self.api.get_requests(method, path)
