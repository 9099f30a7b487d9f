import logging
import socket
import ssl
import threading
from typing import Any, Optional, Tuple, Union

logger = logging.getLogger(__name__)

# Supported network schemes
NETWORKS: Tuple[str, ...] = (
    'udp', 'udp4', 'udp6',
    'tcp', 'tcp4', 'tcp6',
    'tcp+tls', 'tcp4+tls', 'tcp6+tls',
)

DEFAULT_NETWORK = 'tcp'

TLS_SUFFIX = '+tls'


def parse_address(address: Union[str, Tuple[str, int]]) -> Tuple[str, int]:
    """Split a 'host:port' (or '[v6host]:port') address"""
    if isinstance(address, tuple):
        host, port = address
        return host, int(port)
    host, sep, port = address.rpartition(':')
    if not sep or not port.isdigit():
        raise ValueError(f"Invalid syslog address {address!r}, expected host:port")
    return host.strip('[]') or 'localhost', int(port)


class SyslogWriter:
    """
    Write framed syslog messages to a syslog server.

    The connection is opened lazily by the first write and reused by
    all following writes. A failing write drops the connection, so the
    next write dials again. Writes are serialized by a lock.
    """

    def __init__(self,
                 address: Union[str, Tuple[str, int]],
                 network: str = DEFAULT_NETWORK,
                 ssl_context: Optional[ssl.SSLContext] = None,
                 timeout: Optional[float] = None) -> None:
        """
        Initialize the syslog writer.

        Args:
            address: Server address as 'host:port' string or (host, port) tuple
            network: One of NETWORKS (defaults to 'tcp'); unknown schemes
                     fall back to the default
            ssl_context: Client context for the '+tls' schemes
                         (defaults to ssl.create_default_context())
            timeout: Optional socket timeout in seconds
        """
        network = (network or DEFAULT_NETWORK).lower()
        if network not in NETWORKS:
            logger.warning(f"Unrecognized syslog network {network!r}; using {DEFAULT_NETWORK!r}")
            network = DEFAULT_NETWORK
        self.network: str = network
        self.host, self.port = parse_address(address)
        self.ssl_context: Optional[ssl.SSLContext] = ssl_context
        self.timeout: Optional[float] = timeout

        self.sock: Optional[socket.socket] = None
        self.lock: threading.Lock = threading.Lock()

    @property
    def address(self) -> str:
        host = f'[{self.host}]' if ':' in self.host else self.host
        return f'{host}:{self.port}'

    @property
    def tls(self) -> bool:
        return self.network.endswith(TLS_SUFFIX)

    @property
    def datagram(self) -> bool:
        return self.network.startswith('udp')

    @property
    def connected(self) -> bool:
        return self.sock is not None

    def write(self, data: bytes) -> int:
        """
        Send one framed message. Dial and send errors are raised as
        OSError; after a send error the connection is discarded.
        """
        with self.lock:
            if self.sock is None:
                self.sock = self._dial()
            try:
                if self.datagram:
                    self.sock.send(data)
                else:
                    self.sock.sendall(data)
            except OSError as e:
                logger.debug(f"Write to {self.network}://{self.address} failed: {e}")
                self._close_socket()
                raise
        return len(data)

    def _dial(self) -> socket.socket:
        """Internal: Connect according to the configured network scheme"""
        base = self.network[:-len(TLS_SUFFIX)] if self.tls else self.network
        family = {'4': socket.AF_INET, '6': socket.AF_INET6}.get(base[-1], socket.AF_UNSPEC)
        socktype = socket.SOCK_DGRAM if self.datagram else socket.SOCK_STREAM

        last_error: Optional[OSError] = None
        for af, st, proto, _, sockaddr in socket.getaddrinfo(self.host, self.port, family, socktype):
            sock = socket.socket(af, st, proto)
            try:
                if self.timeout is not None:
                    sock.settimeout(self.timeout)
                sock.connect(sockaddr)
            except OSError as e:
                sock.close()
                last_error = e
                continue
            if self.tls:
                context = self.ssl_context or ssl.create_default_context()
                try:
                    sock = context.wrap_socket(sock, server_hostname=self.host)
                except OSError:
                    sock.close()
                    raise
            logger.debug(f"Connected to {self.network}://{self.address}")
            return sock
        raise last_error or OSError(f"No usable address for {self.address}")

    def _close_socket(self) -> None:
        if self.sock is not None:
            try:
                self.sock.close()
            finally:
                self.sock = None

    def close(self) -> None:
        """Close the current connection; a later write dials again"""
        with self.lock:
            self._close_socket()

    def __enter__(self) -> 'SyslogWriter':
        """Context manager entry"""
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> bool:
        """Context manager exit - closes the connection"""
        self.close()
        return False  # Don't suppress exceptions
