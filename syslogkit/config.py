import logging
import os
import ssl
from typing import Mapping, Optional

from .syslog_handler import DEFAULT_FACILITY, SyslogEncoding, SyslogHandler
from .syslog_writer import DEFAULT_NETWORK, SyslogWriter

logger = logging.getLogger(__name__)


class SyslogConfig:
    """
    Complete setup for logging to a syslog server.

    Environment variables (see from_env):
        SYSLOG_NETWORK   udp, udp4, udp6, tcp, tcp4, tcp6, tcp+tls,
                         tcp4+tls or tcp6+tls (default: tcp)
        SYSLOG_ADDRESS   host:port of the syslog server (default: localhost:514)
        SYSLOG_ENCODING  rfc3164, rfc3164+framing, rfc5424 or
                         rfc5424+framing (default: rfc5424+framing)
        SYSLOG_FACILITY  0-23 (default: 16, local0)
        SYSLOG_APP_NAME  APP-NAME to send (default: program name)
        SYSLOG_LEVEL     logging level name (default: INFO)
    """

    def __init__(self,
                 network: str = DEFAULT_NETWORK,
                 address: str = 'localhost:514',
                 encoding: str = SyslogEncoding.RFC5424F.value,
                 facility: int = DEFAULT_FACILITY,
                 app_name: Optional[str] = None,
                 level: str = 'INFO',
                 ssl_context: Optional[ssl.SSLContext] = None) -> None:
        self.network: str = network
        self.address: str = address
        self.encoding: str = encoding
        self.facility: int = facility
        self.app_name: Optional[str] = app_name
        self.level: str = level
        self.ssl_context: Optional[ssl.SSLContext] = ssl_context

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'SyslogConfig':
        """Build the configuration from environment variables"""
        env = os.environ if environ is None else environ

        facility_value = env.get('SYSLOG_FACILITY', str(DEFAULT_FACILITY))
        try:
            facility = int(facility_value)
        except ValueError:
            logger.warning(f"Invalid SYSLOG_FACILITY {facility_value!r}; using default {DEFAULT_FACILITY}")
            facility = DEFAULT_FACILITY

        return cls(
            network=env.get('SYSLOG_NETWORK', DEFAULT_NETWORK),
            address=env.get('SYSLOG_ADDRESS', 'localhost:514'),
            encoding=env.get('SYSLOG_ENCODING', SyslogEncoding.RFC5424F.value),
            facility=facility,
            app_name=env.get('SYSLOG_APP_NAME') or None,
            level=env.get('SYSLOG_LEVEL', 'INFO')
        )

    def get_level(self) -> int:
        """The configured level, falling back to INFO if it is not a known level name"""
        level = logging.getLevelName(self.level.upper())
        if not isinstance(level, int):
            logger.warning(f"Unrecognized log level {self.level!r}; using INFO")
            return logging.INFO
        return level

    def get_writer(self) -> SyslogWriter:
        return SyslogWriter(self.address, network=self.network, ssl_context=self.ssl_context)

    def get_handler(self) -> SyslogHandler:
        return SyslogHandler(
            self.get_writer(),
            encoding=self.encoding,
            facility=self.facility,
            app_name=self.app_name,
            level=self.get_level()
        )

    def get_logger(self, name: Optional[str] = None) -> logging.Logger:
        """Attach a new syslog handler to the named logger and return it"""
        log = logging.getLogger(name)
        log.setLevel(self.get_level())
        log.addHandler(self.get_handler())
        return log
