"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of Sheets Harness, licensed under the MIT License.
See LICENSE file for details.
"""

import logging
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from sheets_harness import __version__
from sheets_harness.core.config import (
    SHEETS_API_SERVER_KEYSTORE,
    SHEETS_API_SERVER_KEYSTORE_PASSWORD,
    TEST_OPTIONS_PROPERTIES,
    LoggingConfig,
    load_sheets_options,
)
from sheets_harness.exceptions import HarnessError
from sheets_harness.keystore import ensure_keystore, generate_keystore, load_keystore
from sheets_harness.ports import find_available_tcp_port
from sheets_harness.sheets_api_server import SheetsApiTestServer

console = Console()

# Initialize the CLI app
app = typer.Typer(help="Sheets Harness - local Google Sheets API test server")

logger = logging.getLogger("sheets_harness")


@app.callback()
def callback(
    debug: bool = typer.Option(False, "--debug", help="Enable debug mode with verbose logging"),
):
    """
    Sheets Harness - run and manage the local Google Sheets API test server.

    Use --debug to enable verbose logging.
    """
    LoggingConfig.from_env().configure_logging(debug=debug)


@app.command("version")
def version():
    """Show the application version."""
    console.print(f"Sheets Harness version: {__version__}")


@app.command("keystore")
def create_keystore(
    path: Path = typer.Argument(Path(SHEETS_API_SERVER_KEYSTORE), help="Keystore file to write"),
    password: str = typer.Option(
        SHEETS_API_SERVER_KEYSTORE_PASSWORD, help="Password protecting the keystore"
    ),
    common_name: str = typer.Option("localhost", help="Host name of the server certificate"),
    validity_days: int = typer.Option(365, help="Days the certificates stay valid"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing keystore"),
):
    """
    Generate a PKCS#12 keystore with a test CA and a server certificate.
    """
    if path.exists() and not force:
        console.print(f"Error: {path} already exists, use --force to overwrite", style="red")
        raise typer.Exit(code=1)

    try:
        generate_keystore(path, password, common_name=common_name, validity_days=validity_days)
        identity = load_keystore(path, password)
    except HarnessError as e:
        console.print(f"Error: {e}", style="red")
        raise typer.Exit(code=1)

    console.print(f"Keystore written to {path}", style="green")
    console.print(f"Certificate: CN={identity.common_name} SHA-256 {identity.fingerprint}")


@app.command("serve")
def serve(
    options_file: Path = typer.Option(
        Path(TEST_OPTIONS_PROPERTIES), help="Options file with clientId, clientSecret and tokens"
    ),
    keystore: Path = typer.Option(Path(SHEETS_API_SERVER_KEYSTORE), help="PKCS#12 keystore"),
    keystore_password: str = typer.Option(
        SHEETS_API_SERVER_KEYSTORE_PASSWORD, help="Password of the keystore"
    ),
    port: int = typer.Option(0, help="Port to listen on (0 picks a free port)"),
    host: str = typer.Option("localhost", help="Host name clients use"),
    bind_address: str = typer.Option("127.0.0.1", help="Interface to bind to"),
):
    """
    Run the Sheets API test server until interrupted.
    """
    try:
        options = load_sheets_options(options_file)
        identity = ensure_keystore(keystore, keystore_password)
        server = SheetsApiTestServer(
            port=port or find_available_tcp_port(host=bind_address),
            keystore_path=keystore,
            keystore_password=keystore_password,
            client_id=options.client_id,
            client_secret=options.client_secret,
            access_token=options.access_token,
            refresh_token=options.refresh_token,
            host=host,
            bind_address=bind_address,
        )
        server.start()
    except (HarnessError, OSError) as e:
        console.print(f"Error: {e}", style="red")
        raise typer.Exit(code=1)

    table = Table(title="Sheets API test server")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Root URL", server.base_url)
    table.add_row("Bind address", f"{bind_address}:{server.port}")
    table.add_row("Certificate", f"CN={identity.common_name}")
    table.add_row("Fingerprint", identity.fingerprint)
    console.print(table)
    console.print("Press Ctrl+C to stop")

    try:
        while server.is_running():
            time.sleep(0.5)
    except KeyboardInterrupt:
        console.print("Stopping")
    finally:
        server.stop()


if __name__ == "__main__":
    app()
