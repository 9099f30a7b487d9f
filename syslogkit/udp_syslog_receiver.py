import logging
import socket
import threading
from typing import Optional

from .syslog_decoder import SyslogDecoder
from .syslog_message import SyslogMessage
from .tcp_syslog_receiver import MessageHandler

logger = logging.getLogger(__name__)


class UDPSyslogReceiver:
    """Receive syslog messages over UDP"""

    def __init__(self, host: str = '0.0.0.0', port: int = 514,
                 handler: Optional[MessageHandler] = None) -> None:
        """
        Initialize UDP syslog receiver.

        Args:
            host: Interface to bind to
                  - '0.0.0.0' = All interfaces (default, required for containers)
                  - '127.0.0.1' = Localhost only (development)
                  - Specific IP = Single interface (production on bare metal)
            port: UDP port to listen on (default: 514, 0 picks a free port)
            handler: Called with every decoded message and the sender's IP

        Every datagram is decoded on its own: it may carry several
        messages, and a final message without trailing newline is
        accepted as complete.

        Security Note:
            When using 0.0.0.0 (all interfaces), ensure proper firewall rules
            or security groups are configured to restrict access to trusted sources.
        """
        self.host: str = host
        self.port: int = port
        self.handler: Optional[MessageHandler] = handler
        self.running: bool = False
        self.listening: threading.Event = threading.Event()

    def start(self) -> None:
        """Start the UDP syslog receiver"""
        self.running = True

        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.bind((self.host, self.port))
        sock.settimeout(1.0)
        self.port = sock.getsockname()[1]

        logger.info(f"UDP syslog receiver listening on {self.host}:{self.port}")
        self.listening.set()

        decoder = SyslogDecoder()
        while self.running:
            try:
                _, addr = decoder.read_from(sock)
            except socket.timeout:
                continue
            except OSError as e:
                if self.running:
                    logger.error(f"Error receiving UDP message: {e}")
                continue

            for message in decoder.flush():
                self._process_message(message, addr[0])

        sock.close()
        self.listening.clear()

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
