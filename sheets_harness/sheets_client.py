"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of Sheets Harness, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Client for the Google Sheets v4 API.

The client is built by a :class:`SheetsClientFactory` from credentials, an
HTTP transport and a root URL policy. The policy is the only thing that
decides where requests go: :class:`DefaultRootUrl` keeps the real service,
:class:`LocalhostRedirect` sends everything to a local test server. The
transport carries the TLS trust configuration, so redirected clients still
validate the server certificate.
"""

import json
import logging
import shutil
import tempfile
import time
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote

import requests
from pydantic import BaseModel, Field

from sheets_harness.core.config import SheetsOptions
from sheets_harness.keystore import load_keystore
from sheets_harness.models import (
    AccessToken,
    AppendValuesResponse,
    BatchGetValuesResponse,
    BatchUpdateSpreadsheetRequest,
    BatchUpdateSpreadsheetResponse,
    ClearValuesResponse,
    MajorDimension,
    Spreadsheet,
    UpdateValuesResponse,
    ValueInputOption,
    ValueRange,
    ValueRenderOption,
    to_wire,
)

# Configure module logger
logger = logging.getLogger("sheets_harness.sheets_client")

DEFAULT_ROOT_URL = "https://sheets.googleapis.com/"
TOKEN_ENDPOINT = "oauth2/v4/token"


class RootUrlPolicy(Protocol):
    """Decides the root URL every client request is sent to."""

    def resolve_root_url(self, default: str) -> str:
        """Return the root URL to use instead of ``default``."""
        ...


class DefaultRootUrl:
    """Keep the real service root URL."""

    def resolve_root_url(self, default: str) -> str:
        return default


class LocalhostRedirect:
    """Send all requests to an HTTPS server on a local port."""

    def __init__(self, port: int, host: str = "localhost"):
        self.port = port
        self.host = host

    def resolve_root_url(self, default: str) -> str:
        return f"https://{self.host}:{self.port}/"

    def __repr__(self) -> str:
        return f"LocalhostRedirect(port={self.port}, host={self.host!r})"


class HttpTransport:
    """Creates configured ``requests`` sessions."""

    def __init__(
        self,
        verify: bool | str = True,
        timeout: tuple[float, float] = (10.0, 30.0),
        trust_env: bool = True,
        bundle_dir: Path | None = None,
    ):
        """
        Initialize the transport.

        Args:
            verify: True for the default CA store, or a path to a CA bundle
            timeout: Connect and read timeout in seconds
            trust_env: Let proxy and CA bundle environment variables apply
            bundle_dir: Temporary directory owned by the transport, removed on close
        """
        self.verify = verify
        self.timeout = timeout
        self.trust_env = trust_env
        self.bundle_dir = bundle_dir

    def create_session(self) -> requests.Session:
        """Create a session that validates certificates against the configured trust."""
        session = requests.Session()
        session.verify = self.verify
        session.trust_env = self.trust_env
        return session

    def close(self) -> None:
        """Remove the temporary CA bundle, if any."""
        if self.bundle_dir is not None:
            shutil.rmtree(self.bundle_dir, ignore_errors=True)
            logger.debug(f"Removed trust bundle directory {self.bundle_dir}")
            self.bundle_dir = None


class HttpTransportBuilder:
    """Builder for :class:`HttpTransport`."""

    def __init__(self):
        self._verify: bool | str = True
        self._timeout: tuple[float, float] = (10.0, 30.0)
        self._trust_env = True
        self._bundle_dir: Path | None = None

    def trust_certificates_from_keystore(
        self, path: str | Path, password: str
    ) -> "HttpTransportBuilder":
        """
        Trust the CA certificates stored in a PKCS#12 keystore.

        The certificates are written to a temporary CA bundle because
        ``requests`` reads trust anchors from a file. The transport removes the
        bundle when it is closed. Environment settings such as
        ``REQUESTS_CA_BUNDLE`` and ``HTTPS_PROXY`` no longer apply.

        Raises:
            KeystoreError: If the keystore cannot be loaded
        """
        identity = load_keystore(path, password)
        if self._bundle_dir is not None:
            shutil.rmtree(self._bundle_dir, ignore_errors=True)
        self._bundle_dir = Path(tempfile.mkdtemp(prefix="sheets-harness-trust-"))
        bundle = identity.write_trust_bundle(self._bundle_dir / "trust.pem")
        logger.debug(f"Trusting certificates from {path} (issuer of {identity.common_name})")
        self._verify = str(bundle)
        self._trust_env = False
        return self

    def timeout(self, read: float, connect: float | None = None) -> "HttpTransportBuilder":
        """Set the read timeout and, optionally, a different connect timeout."""
        self._timeout = (connect if connect is not None else read, read)
        return self

    def build(self) -> HttpTransport:
        return HttpTransport(
            verify=self._verify,
            timeout=self._timeout,
            trust_env=self._trust_env,
            bundle_dir=self._bundle_dir,
        )


class RedirectedClientConfig(BaseModel):
    """Everything needed to build a client that talks to the local test server."""

    client_id: str
    client_secret: str
    access_token: str
    refresh_token: str
    application_name: str = "sheets-harness"
    root_url: str
    keystore_path: Path
    keystore_password: str = Field(..., repr=False)

    model_config = {"frozen": True}

    @property
    def credentials(self) -> SheetsOptions:
        """The credentials as an options model."""
        return SheetsOptions(
            client_id=self.client_id,
            client_secret=self.client_secret,
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            application_name=self.application_name,
        )


class SheetsClient:
    """Client for the Google Sheets v4 API."""

    def __init__(
        self,
        credentials: SheetsOptions,
        root_url: str = DEFAULT_ROOT_URL,
        session: requests.Session | None = None,
        timeout: tuple[float, float] = (10.0, 30.0),
        verify: bool | str = True,
    ):
        """
        Initialize the Sheets client.

        Args:
            credentials: OAuth client and token values
            root_url: URL all API paths are resolved against
            session: Session to send requests with
            timeout: Connect and read timeout in seconds
            verify: Certificate verification passed with every request
        """
        self.credentials = credentials
        self.root_url = root_url if root_url.endswith("/") else f"{root_url}/"
        self.session = session or requests.Session()
        self.timeout = timeout
        self.verify = verify
        self.access_token = credentials.access_token

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self.credentials.application_name,
        }

    def _make_request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
        refresh_on_unauthorized: bool = True,
    ) -> dict[str, Any]:
        """Make a request to the Sheets API.

        Args:
            method: HTTP method
            endpoint: API path relative to the root URL
            params: Query parameters
            json_data: JSON request body
            refresh_on_unauthorized: Refresh the access token once on a 401

        Returns:
            API response as dictionary
        """
        url = f"{self.root_url}{endpoint.lstrip('/')}"

        # Generate a unique request ID for correlation
        request_id = f"{method}_{int(time.time() * 1000)}"

        logger.debug(f"API Request [{request_id}]: {method} {url}")
        logger.debug(f"Parameters [{request_id}]: {params}")
        if logger.isEnabledFor(logging.DEBUG) and json_data:
            logger.debug(f"Request Body [{request_id}]: {json.dumps(json_data)}")

        start_time = time.time()

        try:
            response = self.session.request(
                method=method,
                url=url,
                headers=self.headers,
                params=params,
                json=json_data,
                timeout=self.timeout,
                verify=self.verify,
            )

            duration = time.time() - start_time
            logger.debug(
                f"Response [{request_id}] received in {duration:.2f}s - "
                f"Status: {response.status_code}"
            )

            if (
                response.status_code == 401
                and refresh_on_unauthorized
                and self.credentials.refresh_token
            ):
                logger.info(f"Access token rejected [{request_id}], refreshing")
                self.refresh_access_token()
                return self._make_request(
                    method, endpoint, params, json_data, refresh_on_unauthorized=False
                )

            # Check response status - will raise HTTPError for 4xx/5xx responses
            response.raise_for_status()

            if not response.content:
                return {}

            try:
                return response.json()
            except ValueError as e:
                logger.error(f"JSON Parsing Error [{request_id}]: {e}")
                raise ValueError(f"Could not parse JSON response: {e}") from e

        except requests.exceptions.HTTPError as e:
            logger.error(f"HTTP Error [{request_id}]: {e}")
            if e.response is not None:
                try:
                    logger.error(f"API Error Details [{request_id}]: {e.response.json()}")
                except ValueError:
                    logger.error(f"Response text [{request_id}]: {e.response.text[:500]}")
            raise

        except requests.exceptions.ConnectionError as e:
            logger.error(f"Connection Error [{request_id}]: Could not connect to {url}: {e}")
            raise

        except requests.exceptions.Timeout as e:
            logger.error(
                f"Timeout Error [{request_id}]: Request to {url} timed out after {self.timeout}s: {e}"
            )
            raise

    def refresh_access_token(self) -> AccessToken:
        """Exchange the refresh token for a new access token.

        Returns:
            The issued token, which the client uses from now on
        """
        url = f"{self.root_url}{TOKEN_ENDPOINT}"
        response = self.session.post(
            url,
            data={
                "grant_type": "refresh_token",
                "client_id": self.credentials.client_id,
                "client_secret": self.credentials.client_secret,
                "refresh_token": self.credentials.refresh_token,
            },
            timeout=self.timeout,
            verify=self.verify,
        )
        response.raise_for_status()

        token = AccessToken.model_validate(response.json())
        self.access_token = token.access_token
        logger.debug("Access token refreshed")
        return token

    def _values_path(self, spreadsheet_id: str, range_: str, suffix: str = "") -> str:
        return f"v4/spreadsheets/{spreadsheet_id}/values/{quote(range_, safe='')}{suffix}"

    def create_spreadsheet(self, spreadsheet: Spreadsheet) -> Spreadsheet:
        """Create a spreadsheet and return it with its assigned identifier."""
        response = self._make_request("POST", "v4/spreadsheets", json_data=to_wire(spreadsheet))
        return Spreadsheet.model_validate(response)

    def get_spreadsheet(self, spreadsheet_id: str) -> Spreadsheet:
        response = self._make_request("GET", f"v4/spreadsheets/{spreadsheet_id}")
        return Spreadsheet.model_validate(response)

    def batch_update(
        self, spreadsheet_id: str, request: BatchUpdateSpreadsheetRequest
    ) -> BatchUpdateSpreadsheetResponse:
        """Apply structural changes (add, delete or rename sheets) atomically."""
        response = self._make_request(
            "POST", f"v4/spreadsheets/{spreadsheet_id}:batchUpdate", json_data=to_wire(request)
        )
        return BatchUpdateSpreadsheetResponse.model_validate(response)

    def get_values(
        self,
        spreadsheet_id: str,
        range_: str,
        major_dimension: MajorDimension | str | None = None,
        value_render_option: ValueRenderOption | str | None = None,
    ) -> ValueRange:
        """
        Read the values of a range.

        Args:
            spreadsheet_id: Spreadsheet to read from
            range_: A1 notation range
            major_dimension: ROWS (default) or COLUMNS
            value_render_option: How values are rendered

        Returns:
            The values, with trailing empty rows and columns omitted
        """
        params = {}
        if major_dimension:
            params["majorDimension"] = MajorDimension(major_dimension).value
        if value_render_option:
            params["valueRenderOption"] = ValueRenderOption(value_render_option).value

        response = self._make_request(
            "GET", self._values_path(spreadsheet_id, range_), params=params or None
        )
        return ValueRange.model_validate(response)

    def batch_get_values(
        self,
        spreadsheet_id: str,
        ranges: list[str],
        major_dimension: MajorDimension | str | None = None,
        value_render_option: ValueRenderOption | str | None = None,
    ) -> BatchGetValuesResponse:
        params: dict[str, Any] = {"ranges": list(ranges)}
        if major_dimension:
            params["majorDimension"] = MajorDimension(major_dimension).value
        if value_render_option:
            params["valueRenderOption"] = ValueRenderOption(value_render_option).value

        response = self._make_request(
            "GET", f"v4/spreadsheets/{spreadsheet_id}/values:batchGet", params=params
        )
        return BatchGetValuesResponse.model_validate(response)

    def update_values(
        self,
        spreadsheet_id: str,
        range_: str,
        value_range: ValueRange,
        value_input_option: ValueInputOption | str = ValueInputOption.RAW,
    ) -> UpdateValuesResponse:
        """
        Write values into a range.

        Args:
            spreadsheet_id: Spreadsheet to write to
            range_: A1 notation range whose top left cell receives the first value
            value_range: The values to write
            value_input_option: RAW stores values as given, USER_ENTERED parses them

        Returns:
            Summary of the updated cells
        """
        response = self._make_request(
            "PUT",
            self._values_path(spreadsheet_id, range_),
            params={"valueInputOption": ValueInputOption(value_input_option).value},
            json_data=to_wire(value_range),
        )
        return UpdateValuesResponse.model_validate(response)

    def append_values(
        self,
        spreadsheet_id: str,
        range_: str,
        value_range: ValueRange,
        value_input_option: ValueInputOption | str = ValueInputOption.RAW,
        insert_data_option: str | None = None,
    ) -> AppendValuesResponse:
        """Append rows after the table found in a range."""
        params = {"valueInputOption": ValueInputOption(value_input_option).value}
        if insert_data_option:
            params["insertDataOption"] = insert_data_option

        response = self._make_request(
            "POST",
            self._values_path(spreadsheet_id, range_, ":append"),
            params=params,
            json_data=to_wire(value_range),
        )
        return AppendValuesResponse.model_validate(response)

    def clear_values(self, spreadsheet_id: str, range_: str) -> ClearValuesResponse:
        response = self._make_request(
            "POST", self._values_path(spreadsheet_id, range_, ":clear"), json_data={}
        )
        return ClearValuesResponse.model_validate(response)

    def close(self) -> None:
        self.session.close()


class SheetsClientFactory:
    """Builds :class:`SheetsClient` instances from credentials, transport and root URL policy."""

    def __init__(
        self,
        credentials: SheetsOptions,
        transport: HttpTransport | None = None,
        root_url_policy: RootUrlPolicy | None = None,
    ):
        self.credentials = credentials
        self.transport = transport or HttpTransport()
        self.root_url_policy = root_url_policy or DefaultRootUrl()

    @property
    def root_url(self) -> str:
        """Root URL clients built by this factory send requests to."""
        return self.root_url_policy.resolve_root_url(DEFAULT_ROOT_URL)

    def create_client(self) -> SheetsClient:
        root_url = self.root_url
        logger.debug(f"Creating Sheets client for {root_url}")
        return SheetsClient(
            credentials=self.credentials,
            root_url=root_url,
            session=self.transport.create_session(),
            timeout=self.transport.timeout,
            verify=self.transport.verify,
        )

    def close(self) -> None:
        self.transport.close()
