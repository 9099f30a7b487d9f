#!/usr/bin/env python3
"""
Syslog Receiver - Main Entry Point
Receives syslog messages over UDP, TCP or TLS, decodes them and logs
every message together with its format, facility and severity.
"""

import logging
import os
import threading
import time

from .syslog_message import RFC3164SyslogMessage, RFC5424SyslogMessage, SyslogMessage
from .tcp_syslog_receiver import TCPSyslogReceiver
from .tls_syslog_receiver import TLSSyslogReceiver
from .udp_syslog_receiver import UDPSyslogReceiver

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def describe(message: SyslogMessage) -> str:
    """One line summary of a decoded message"""
    if isinstance(message, RFC5424SyslogMessage):
        sd = ''.join(f'[{element.id}]' for element in message.sd) or '-'
        return (f"RFC5424 {message.facility_name}.{message.severity_name} "
                f"{message.hostname} {message.app_name} {message.msg_id} {sd} {message.msg!r}")
    if isinstance(message, RFC3164SyslogMessage):
        return (f"RFC3164 {message.facility_name}.{message.severity_name} "
                f"{message.hostname} {message.message_tag} {message.message_content!r}")
    return f"undecoded {len(message)} bytes {message}"


def log_message(message: SyslogMessage, source_ip: str) -> None:
    logger.info(f"{source_ip}: {describe(message)}")


def main():
    """Main entry point"""
    # Configuration from environment variables
    host = os.environ.get('SYSLOG_HOST', '0.0.0.0')
    udp_port = int(os.environ.get('SYSLOG_UDP_PORT', '514'))
    tcp_port = int(os.environ.get('SYSLOG_TCP_PORT', '514'))
    tls_port = int(os.environ.get('SYSLOG_TLS_PORT', '6514'))
    cert_file = os.environ.get('SYSLOG_CERT_FILE', 'cert.pem')
    key_file = os.environ.get('SYSLOG_KEY_FILE', 'key.pem')
    enable_udp = os.environ.get('SYSLOG_ENABLE_UDP', 'true').lower() == 'true'
    enable_tcp = os.environ.get('SYSLOG_ENABLE_TCP', 'false').lower() == 'true'
    enable_tls = os.environ.get('SYSLOG_ENABLE_TLS', 'true').lower() == 'true'

    logger.info("Starting Syslog Receiver")
    logger.info(f"UDP Port: {udp_port} (enabled: {enable_udp})")
    logger.info(f"TCP Port: {tcp_port} (enabled: {enable_tcp})")
    logger.info(f"TLS Port: {tls_port} (enabled: {enable_tls})")

    receivers = []
    if enable_udp:
        receivers.append(UDPSyslogReceiver(host=host, port=udp_port, handler=log_message))
    if enable_tcp:
        receivers.append(TCPSyslogReceiver(host=host, port=tcp_port, handler=log_message))
    if enable_tls:
        receivers.append(TLSSyslogReceiver(
            host=host,
            port=tls_port,
            cert_file=cert_file,
            key_file=key_file,
            handler=log_message
        ))

    for receiver in receivers:
        thread = threading.Thread(target=receiver.start, daemon=True)
        thread.start()

    # Keep running
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        for receiver in receivers:
            receiver.stop()


if __name__ == '__main__':
    main()
