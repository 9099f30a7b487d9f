import logging
import select
import socket
import threading
from typing import Callable, List, Optional, Tuple

from .syslog_decoder import SyslogDecoder
from .syslog_message import SyslogMessage

logger = logging.getLogger(__name__)

MessageHandler = Callable[[SyslogMessage, str], None]


class TCPSyslogReceiver:
    """Receive syslog messages over TCP with support for multiple connections"""

    HANDSHAKE_TIMEOUT = 10.0

    def __init__(self, host: str = '0.0.0.0', port: int = 514,
                 handler: Optional[MessageHandler] = None) -> None:
        """
        Initialize TCP syslog receiver.

        Args:
            host: Interface to bind to
            port: TCP port to listen on (0 picks a free port, available
                  in self.port once listening is set)
            handler: Called with every decoded message and the sender's IP
        """
        self.host: str = host
        self.port: int = port
        self.handler: Optional[MessageHandler] = handler
        self.running: bool = False
        self.listening: threading.Event = threading.Event()
        self.connections: List[Tuple[socket.socket, threading.Thread]] = []
        self.lock: threading.Lock = threading.Lock()

    def start(self) -> None:
        """Start the receiver; blocks until stop() is called"""
        self.running = True

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((self.host, self.port))
        sock.listen(5)
        sock.setblocking(False)
        self.port = sock.getsockname()[1]

        logger.info(f"{type(self).__name__} listening on {self.host}:{self.port}")
        self.listening.set()

        # Accept connections
        while self.running:
            try:
                readable, _, _ = select.select([sock], [], [], 1.0)
                if readable:
                    client_sock, client_addr = sock.accept()
                    logger.info(f"New connection from {client_addr}")

                    handler = threading.Thread(
                        target=self._handle_connection,
                        args=(client_sock, client_addr),
                        daemon=True
                    )
                    handler.start()
            except OSError as e:
                if self.running:
                    logger.error(f"Error accepting connection: {e}")

        sock.close()
        self.listening.clear()

    def _wrap(self, sock: socket.socket) -> socket.socket:
        """Hook for subclasses securing the accepted connection"""
        return sock

    def _handle_connection(self, client_sock: socket.socket, addr: Tuple[str, int]) -> None:
        """Handle a single connection"""
        decoder = SyslogDecoder()
        conn = client_sock

        try:
            client_sock.settimeout(self.HANDSHAKE_TIMEOUT)
            conn = self._wrap(client_sock)
            conn.settimeout(1.0)
            with self.lock:
                self.connections.append((conn, threading.current_thread()))
            while self.running:
                try:
                    if not decoder.read(conn):
                        logger.info(f"Connection closed by {addr}")
                        # Deliver a final unterminated message, if any
                        for message in decoder.flush():
                            self._process_message(message, addr[0])
                        break
                except socket.timeout:
                    continue
                except OSError as e:
                    if self.running:
                        logger.error(f"Error reading from {addr}: {e}")
                    break

                for message in decoder.decode():
                    self._process_message(message, addr[0])

        except OSError as e:
            logger.error(f"Error setting up connection with {addr}: {e}")
        finally:
            conn.close()
            with self.lock:
                self.connections = [
                    entry for entry in self.connections if entry[0] is not conn
                ]
            logger.info(f"Connection handler for {addr} terminated")

    def _process_message(self, message: SyslogMessage, source_ip: str) -> None:
        """Process a single syslog message"""
        if self.handler is None:
            logger.info(f"syslog from {source_ip}: {message}")
            return
        try:
            self.handler(message, source_ip)
        except Exception as e:
            logger.error(f"Error handling message from {source_ip}: {e}", exc_info=True)

    def stop(self) -> None:
        """Stop the receiver"""
        self.running = False
        with self.lock:
            for sock, _ in self.connections:
                try:
                    sock.shutdown(socket.SHUT_RDWR)
                except OSError:
                    pass
