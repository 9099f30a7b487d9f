from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

# Syslog severity levels
SEVERITY_MAP: Dict[int, str] = {
    0: 'emergency',
    1: 'alert',
    2: 'critical',
    3: 'error',
    4: 'warning',
    5: 'notice',
    6: 'info',
    7: 'debug'
}

# Syslog facilities
FACILITY_MAP: Dict[int, str] = {
    0: 'kern', 1: 'user', 2: 'mail', 3: 'daemon',
    4: 'auth', 5: 'syslog', 6: 'lpr', 7: 'news',
    8: 'uucp', 9: 'cron', 10: 'authpriv', 11: 'ftp',
    12: 'ntp', 13: 'security', 14: 'console', 15: 'solaris-cron',
    16: 'local0', 17: 'local1', 18: 'local2', 19: 'local3',
    20: 'local4', 21: 'local5', 22: 'local6', 23: 'local7'
}


@dataclass
class SyslogSDParam:
    """A single key="value" pair of a structured data element"""
    key: str
    value: str


@dataclass
class SyslogSDElement:
    """RFC 5424 structured data element: [id key="value" ...]"""
    id: str
    params: List[SyslogSDParam] = field(default_factory=list)


class SyslogMessage:
    """
    Common base of all decoded syslog messages.

    Every message keeps the raw bytes it was decoded from, including
    the framing (octet count header or trailing newline), so it can be
    logged or re-emitted as received.
    """

    def __init__(self, raw: bytes) -> None:
        self._raw: bytes = bytes(raw)

    @property
    def raw(self) -> bytes:
        """The raw bytes of the syslog message"""
        return self._raw

    def __len__(self) -> int:
        return len(self._raw)

    def __str__(self) -> str:
        return repr(self._raw.decode('utf-8', errors='replace'))

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self})'


class UndecodedSyslogMessage(SyslogMessage):
    """A fully received syslog message not matching any known format"""


class _PrioritizedSyslogMessage(SyslogMessage):

    def __init__(self, raw: bytes, facility: int, severity: int) -> None:
        super().__init__(raw)
        self.facility: int = facility
        self.severity: int = severity

    @property
    def priority(self) -> int:
        return (self.facility << 3) | self.severity

    @property
    def facility_name(self) -> str:
        return FACILITY_MAP.get(self.facility, 'unknown')

    @property
    def severity_name(self) -> str:
        return SEVERITY_MAP.get(self.severity, 'unknown')


class RFC3164SyslogMessage(_PrioritizedSyslogMessage):
    """
    RFC 3164 (BSD syslog) message
    https://datatracker.ietf.org/doc/html/rfc3164

    The timestamp carries no year on the wire; the decoder fills in
    the year of the receive time.
    """

    def __init__(self, raw: bytes, facility: int, severity: int,
                 timestamp: datetime, hostname: str,
                 message_tag: str, message_content: str) -> None:
        super().__init__(raw, facility, severity)
        self.timestamp: datetime = timestamp
        self.hostname: str = hostname
        self.message_tag: str = message_tag
        self.message_content: str = message_content


class RFC5424SyslogMessage(_PrioritizedSyslogMessage):
    """
    RFC 5424 (structured syslog) message
    https://datatracker.ietf.org/doc/html/rfc5424

    Header fields keep the nil value '-' as is. A nil timestamp
    is represented as None.
    """

    def __init__(self, raw: bytes, facility: int, severity: int,
                 timestamp: Optional[datetime], hostname: str, app_name: str,
                 proc_id: str, msg_id: str, sd: List[SyslogSDElement],
                 msg: str, version: int = 1) -> None:
        super().__init__(raw, facility, severity)
        self.version: int = version
        self.timestamp: Optional[datetime] = timestamp
        self.hostname: str = hostname
        self.app_name: str = app_name
        self.proc_id: str = proc_id
        self.msg_id: str = msg_id
        self.sd: List[SyslogSDElement] = sd
        self.msg: str = msg
