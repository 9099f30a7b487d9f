"""
syslogkit

Syslog protocol support for Python logging: encode log records as
RFC 3164 or RFC 5424 messages (implicit or octet counted framing),
deliver them over UDP, TCP or TLS, and decode syslog byte streams
back into messages.
"""

from .config import SyslogConfig
from .message_builder import MessageBuilder, get_message_builder
from .syslog_decoder import DecoderState, SyslogDecoder
from .syslog_handler import (
    NOTICE,
    SYSLOG_KEY,
    SyslogEncoding,
    SyslogHandler,
    notice,
)
from .syslog_message import (
    RFC3164SyslogMessage,
    RFC5424SyslogMessage,
    SyslogMessage,
    SyslogSDElement,
    SyslogSDParam,
    UndecodedSyslogMessage,
)
from .syslog_parser import SyslogParser
from .syslog_writer import SyslogWriter
from .tcp_syslog_receiver import TCPSyslogReceiver
from .tls_syslog_receiver import TLSSyslogReceiver
from .udp_syslog_receiver import UDPSyslogReceiver

__all__ = [
    'NOTICE',
    'SYSLOG_KEY',
    'DecoderState',
    'MessageBuilder',
    'RFC3164SyslogMessage',
    'RFC5424SyslogMessage',
    'SyslogConfig',
    'SyslogDecoder',
    'SyslogEncoding',
    'SyslogHandler',
    'SyslogMessage',
    'SyslogParser',
    'SyslogSDElement',
    'SyslogSDParam',
    'SyslogWriter',
    'TCPSyslogReceiver',
    'TLSSyslogReceiver',
    'UDPSyslogReceiver',
    'UndecodedSyslogMessage',
    'get_message_builder',
    'notice',
]

__version__ = '1.0.0'
