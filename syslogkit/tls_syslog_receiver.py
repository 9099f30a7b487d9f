import logging
import os
import socket
import ssl
from subprocess import PIPE, run
from typing import Optional

from .tcp_syslog_receiver import MessageHandler, TCPSyslogReceiver

logger = logging.getLogger(__name__)


class TLSSyslogReceiver(TCPSyslogReceiver):
    """Receive syslog messages over TLS with support for multiple connections"""

    def __init__(self, host: str = '0.0.0.0', port: int = 6514,
                 cert_file: str = 'cert.pem', key_file: str = 'key.pem',
                 handler: Optional[MessageHandler] = None) -> None:
        super().__init__(host=host, port=port, handler=handler)
        self.cert_file: str = cert_file
        self.key_file: str = key_file
        self.context: Optional[ssl.SSLContext] = None

    def start(self) -> None:
        """Start the TLS syslog receiver"""
        self.context = self._create_context()
        super().start()

    def _create_context(self) -> ssl.SSLContext:
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)

        try:
            context.load_cert_chain(self.cert_file, self.key_file)
        except FileNotFoundError:
            logger.warning(f"Certificate files not found at {self.cert_file}. Generating self-signed certificate...")
            # Generate in same directory as requested cert file
            cert_dir = os.path.dirname(self.cert_file) or '.'
            os.makedirs(cert_dir, exist_ok=True)
            self._generate_self_signed_cert(self.cert_file, self.key_file)
            context.load_cert_chain(self.cert_file, self.key_file)

        return context

    def _wrap(self, sock: socket.socket) -> socket.socket:
        # Handshake errors (ssl.SSLError) end the connection handler
        return self.context.wrap_socket(sock, server_side=True)

    def _generate_self_signed_cert(self, cert_path: str, key_path: str) -> None:
        """Generate a self-signed certificate for testing"""
        logger.info(f"Generating self-signed certificate at {cert_path}...")
        cmd = [
            'openssl', 'req', '-x509', '-newkey', 'rsa:2048',
            '-keyout', key_path, '-out', cert_path,
            '-days', '365', '-nodes',
            '-subj', '/CN=localhost',
            '-addext', 'subjectAltName=DNS:localhost,IP:127.0.0.1'
        ]

        result = run(cmd, stdout=PIPE, stderr=PIPE)
        if result.returncode != 0:
            logger.error(f"Failed to generate certificate: {result.stderr.decode()}")
            raise RuntimeError("Could not generate self-signed certificate")

        logger.info(f"Self-signed certificate generated successfully at {cert_path}")
