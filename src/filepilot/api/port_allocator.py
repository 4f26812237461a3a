"""Deterministic port allocation for the share server.

Candidate ports are tried strictly in order and the first one that binds is
returned as a listening socket, which is handed straight to uvicorn so no
other process can grab the port between the check and the real bind.
"""
from __future__ import annotations

import os
import socket
from dataclasses import dataclass

from ..observability import get_logger
from .error_codes import NoPortAvailableError

logger = get_logger(__name__)

LISTEN_BACKLOG = 128


@dataclass
class AllocatedPort:
    """A bound, listening socket and the port it holds."""
    port: int
    sock: socket.socket

    def close(self) -> None:
        self.sock.close()


class PortAllocator:
    """Try an ordered, bounded range of ports and keep the first free one."""

    def __init__(self, ports: range | list[int], host: str = '0.0.0.0'):
        self.ports = list(ports)
        if not self.ports:
            raise ValueError('Port range must not be empty')
        self.host = host

    def _try_bind(self, port: int) -> socket.socket | None:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            if os.name != 'nt':
                # Allows rebinding a port in TIME_WAIT, not one held by a listener.
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, port))
            sock.listen(LISTEN_BACKLOG)
        except OSError as e:
            logger.debug('port_unavailable', port=port, host=self.host, error=str(e))
            sock.close()
            return None
        return sock

    def allocate(self) -> AllocatedPort:
        """Bind the first available candidate port.

        Raises:
            NoPortAvailableError: If every port in the range is occupied
        """
        for port in self.ports:
            sock = self._try_bind(port)
            if sock is not None:
                logger.info('port_allocated', port=port, host=self.host)
                return AllocatedPort(port=port, sock=sock)
        raise NoPortAvailableError(self.ports[0], self.ports[-1], self.host)
