"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of Sheets Harness, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Error taxonomy for the Sheets harness.

Setup errors (configuration, keystore, server startup) are fatal for a whole
test class. Execution errors surface to the individual test that issued the
request.
"""


class HarnessError(Exception):
    """Base class for all harness errors."""


class ConfigurationError(HarnessError):
    """A required option is missing or the options file is unreadable."""


class KeystoreError(HarnessError):
    """The TLS keystore could not be read, decrypted or written."""


class ServerStartupError(HarnessError):
    """The mock API server could not bind its port or did not reach a running state."""


class ExecutionError(HarnessError):
    """A request issued through the integration context failed.

    Attributes:
        uri: The endpoint URI that was invoked
        cause: The underlying exception raised by the connector or transport
    """

    def __init__(self, uri: str, cause: BaseException):
        self.uri = uri
        self.cause = cause
        super().__init__(f"Failed to invoke {uri}: {type(cause).__name__}: {cause}")
