"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of Sheets Harness, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Port allocation for the mock API server.

Candidates are drawn at random from the unprivileged range so that parallel
test runs on the same machine are unlikely to pick the same port, and each
candidate is probed by binding to it before it is handed out.
"""

import logging
import random
import socket

logger = logging.getLogger("sheets_harness.ports")

PORT_RANGE_MIN = 1024
PORT_RANGE_MAX = 65535
MAX_ATTEMPTS = 100


def is_port_available(port: int, host: str = "127.0.0.1") -> bool:
    """
    Check whether a TCP port can currently be bound on the given interface.

    Args:
        port: The port to probe
        host: The interface to probe on

    Returns:
        True if the port could be bound, False otherwise
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def find_available_tcp_port(
    min_port: int = PORT_RANGE_MIN,
    max_port: int = PORT_RANGE_MAX,
    host: str = "127.0.0.1",
    max_attempts: int = MAX_ATTEMPTS,
) -> int:
    """
    Find an unused TCP port within a range.

    Args:
        min_port: Lowest acceptable port
        max_port: Highest acceptable port
        host: Interface the port must be bindable on
        max_attempts: Number of random candidates to probe before giving up

    Returns:
        A port number that was free at the time of the probe

    Raises:
        ValueError: If the range is invalid
        OSError: If no free port was found
    """
    if not 0 < min_port <= max_port <= PORT_RANGE_MAX:
        raise ValueError(f"Invalid port range {min_port}-{max_port}")

    attempts = min(max_attempts, max_port - min_port + 1)
    for _ in range(attempts):
        candidate = random.randint(min_port, max_port)
        if is_port_available(candidate, host):
            logger.debug(f"Allocated TCP port {candidate} on {host}")
            return candidate

    raise OSError(
        f"Could not find an available TCP port in range [{min_port}, {max_port}] "
        f"after {attempts} attempts"
    )
