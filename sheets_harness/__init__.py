"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of Sheets Harness, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Sheets Harness - offline integration testing for Google Sheets connectors
A local TLS mock of the Sheets v4 API plus pytest fixtures that redirect a connector to it
"""

__version__ = "0.1.0"
