import logging
import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Pattern, Tuple

from .syslog_message import (
    RFC3164SyslogMessage,
    RFC5424SyslogMessage,
    SyslogMessage,
    SyslogSDElement,
    SyslogSDParam,
    UndecodedSyslogMessage,
)

logger = logging.getLogger(__name__)

MONTHS: Tuple[str, ...] = (
    'Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
    'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec'
)

NILVALUE = '-'


class MalformedSyslogMessage(ValueError):
    """Raised internally when a field does not match its expected syntax"""


class SyslogParser:
    """
    Parse syslog messages according to RFC 5424 and RFC 3164
    https://devops.com/syslogs-in-linux-understanding-facilities-and-levels/

    The parser works on the raw bytes of exactly one framed message.
    The format is selected by the first byte following the PRI field:
    a month name selects RFC 3164, the version digit '1' selects RFC 5424.
    Anything not matching its format is returned as undecoded message.
    """
    # Maximum PRI value: facility 23, severity 7
    MAX_PRI = 191

    RFC3164_FIRST_BYTES = b'JFMASOND'

    """
    # RFC 3164 timestamp
    Fixed width "Mmm dd hh:mm:ss" format with a space padded day
    and neither year nor time zone.
    """
    RFC3164_TIMESTAMP_LENGTH = 15
    RFC3164_TIMESTAMP_PATTERN: Pattern[bytes] = re.compile(
        rb'^(?P<month>[A-Z][a-z]{2}) (?P<day> \d|\d{2}) '
        rb'(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2})$'
    )

    """
    # RFC 5424 timestamp
    RFC 3339 date time with optional fractional seconds and mandatory
    time zone designator.
    """
    RFC5424_TIMESTAMP_PATTERN: Pattern[bytes] = re.compile(
        rb'^(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})T'
        rb'(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2})'
        rb'(?:\.(?P<fraction>\d{1,9}))?'
        rb'(?P<tz>Z|(?P<tzsign>[+-])(?P<tzhour>\d{2}):(?P<tzminute>\d{2}))$'
    )

    @classmethod
    def parse(cls, raw: bytes, off: int = 0) -> SyslogMessage:
        """
        Parse a framed syslog message starting at the given offset.
        The returned message always owns the complete raw bytes.
        """
        try:
            off = cls._expect(raw, off, b'<')
            off, facility, severity = cls._parse_pri(raw, off)
            off = cls._expect(raw, off, b'>')
            if off >= len(raw):
                raise MalformedSyslogMessage('missing header')
            first = raw[off]
            if first in cls.RFC3164_FIRST_BYTES:
                return cls._parse_rfc3164(raw, off, facility, severity)
            if first == ord('1'):
                return cls._parse_rfc5424(raw, off, facility, severity)
            raise MalformedSyslogMessage(f'unknown format marker {first:#04x}')
        except ValueError as e:
            logger.debug(f"Undecodable syslog message: {e}")
            return UndecodedSyslogMessage(raw)

    @classmethod
    def _parse_rfc3164(cls, raw: bytes, off: int,
                       facility: int, severity: int) -> RFC3164SyslogMessage:
        """Parse RFC 3164 format syslog message"""
        off, timestamp = cls._parse_rfc3164_timestamp(raw, off)
        off = cls._expect(raw, off, b' ')
        off, hostname = cls._parse_token(raw, off)
        off = cls._expect(raw, off, b' ')
        off, message_tag = cls._parse_token(raw, off)
        off = cls._expect(raw, off, b' ')
        message_content = cls._parse_trailer(raw, off)
        return RFC3164SyslogMessage(
            raw, facility, severity,
            timestamp=timestamp,
            hostname=hostname,
            message_tag=message_tag,
            message_content=message_content
        )

    @classmethod
    def _parse_rfc5424(cls, raw: bytes, off: int,
                       facility: int, severity: int) -> RFC5424SyslogMessage:
        """Parse RFC 5424 format syslog message"""
        off = cls._expect(raw, off, b'1')
        off = cls._expect(raw, off, b' ')
        off, timestamp = cls._parse_rfc5424_timestamp(raw, off)
        off = cls._expect(raw, off, b' ')
        off, hostname = cls._parse_token(raw, off)
        off = cls._expect(raw, off, b' ')
        off, app_name = cls._parse_token(raw, off)
        off = cls._expect(raw, off, b' ')
        off, proc_id = cls._parse_token(raw, off)
        off = cls._expect(raw, off, b' ')
        off, msg_id = cls._parse_token(raw, off)
        off = cls._expect(raw, off, b' ')
        off, sd = cls._parse_sd(raw, off)
        # SP between SD and MSG
        if off < len(raw) and raw[off] == ord(' '):
            off += 1
        msg = cls._parse_trailer(raw, off)
        return RFC5424SyslogMessage(
            raw, facility, severity,
            timestamp=timestamp,
            hostname=hostname,
            app_name=app_name,
            proc_id=proc_id,
            msg_id=msg_id,
            sd=sd,
            msg=msg
        )

    @staticmethod
    def _expect(raw: bytes, off: int, expected: bytes) -> int:
        if raw[off:off + 1] != expected:
            raise MalformedSyslogMessage(f'expected {expected!r} at offset {off}')
        return off + 1

    @classmethod
    def _parse_pri(cls, raw: bytes, off: int) -> Tuple[int, int, int]:
        end = off
        while end < len(raw) and end - off <= 3 and 0x30 <= raw[end] <= 0x39:
            end += 1
        if end == off or end - off > 3:
            raise MalformedSyslogMessage('invalid PRI')
        pri = int(raw[off:end])
        if pri > cls.MAX_PRI:
            raise MalformedSyslogMessage(f'PRI out of range: {pri}')
        return end, pri >> 3, pri & 0x07

    @staticmethod
    def _parse_token(raw: bytes, off: int) -> Tuple[int, str]:
        """A header field, terminated by space, newline or end of data"""
        if off >= len(raw):
            raise MalformedSyslogMessage('missing header field')
        end = off
        while end < len(raw) and raw[end] not in b' \n':
            end += 1
        return end, raw[off:end].decode('utf-8', errors='replace')

    @staticmethod
    def _parse_trailer(raw: bytes, off: int) -> str:
        """The message text up to the next newline"""
        end = raw.find(b'\n', off)
        if end < 0:
            end = len(raw)
        return raw[off:end].decode('utf-8', errors='replace')

    @classmethod
    def _parse_rfc3164_timestamp(cls, raw: bytes, off: int) -> Tuple[int, datetime]:
        end = off + cls.RFC3164_TIMESTAMP_LENGTH
        if end >= len(raw):
            raise MalformedSyslogMessage('truncated timestamp')
        match = cls.RFC3164_TIMESTAMP_PATTERN.match(raw[off:end])
        if not match:
            raise MalformedSyslogMessage('invalid RFC 3164 timestamp')
        month_name = match.group('month').decode('ascii')
        if month_name not in MONTHS:
            raise MalformedSyslogMessage(f'invalid month: {month_name}')
        month = MONTHS.index(month_name) + 1
        day = int(match.group('day'))
        hour = int(match.group('hour'))
        minute = int(match.group('minute'))
        second = int(match.group('second'))
        # No year on the wire: use the current one, going back to the
        # last leap year for Feb 29.
        year = datetime.now().year
        for candidate in range(year, year - 4, -1):
            try:
                return end, datetime(candidate, month, day, hour, minute, second)
            except ValueError:
                continue
        raise MalformedSyslogMessage('invalid RFC 3164 date')

    @classmethod
    def _parse_rfc5424_timestamp(cls, raw: bytes,
                                 off: int) -> Tuple[int, Optional[datetime]]:
        off, text = cls._parse_token(raw, off)
        if text == NILVALUE:
            return off, None
        match = cls.RFC5424_TIMESTAMP_PATTERN.match(text.encode('utf-8'))
        if not match:
            raise MalformedSyslogMessage(f'invalid RFC 5424 timestamp: {text}')
        if match.group('tz') == b'Z':
            tz = timezone.utc
        else:
            offset = timedelta(hours=int(match.group('tzhour')),
                               minutes=int(match.group('tzminute')))
            if match.group('tzsign') == b'-':
                offset = -offset
            tz = timezone(offset)
        fraction = match.group('fraction') or b'0'
        microsecond = int(fraction[:6].ljust(6, b'0'))
        timestamp = datetime(
            int(match.group('year')), int(match.group('month')),
            int(match.group('day')), int(match.group('hour')),
            int(match.group('minute')), int(match.group('second')),
            microsecond, tzinfo=tz
        )
        return off, timestamp

    @classmethod
    def _parse_sd(cls, raw: bytes, off: int) -> Tuple[int, List[SyslogSDElement]]:
        if off >= len(raw):
            raise MalformedSyslogMessage('missing structured data')
        elements: List[SyslogSDElement] = []
        if raw[off] == ord(NILVALUE):
            return off + 1, elements
        while True:
            off, element = cls._parse_sd_element(raw, off)
            elements.append(element)
            if off >= len(raw) or raw[off] != ord('['):
                break
        return off, elements

    @classmethod
    def _parse_sd_element(cls, raw: bytes, off: int) -> Tuple[int, SyslogSDElement]:
        off = cls._expect(raw, off, b'[')
        end = off
        while end < len(raw) and raw[end] not in b' ]\n':
            end += 1
        if end == off:
            raise MalformedSyslogMessage('missing SD-ID')
        element = SyslogSDElement(raw[off:end].decode('utf-8', errors='replace'))
        off = end
        while True:
            if off >= len(raw):
                raise MalformedSyslogMessage('unterminated SD element')
            if raw[off] == ord(']'):
                return off + 1, element
            off = cls._expect(raw, off, b' ')
            off, param = cls._parse_sd_param(raw, off)
            element.params.append(param)

    @classmethod
    def _parse_sd_param(cls, raw: bytes, off: int) -> Tuple[int, SyslogSDParam]:
        end = off
        while end < len(raw) and raw[end] != ord('='):
            if raw[end] in b' ]"\n':
                raise MalformedSyslogMessage('invalid SD-PARAM name')
            end += 1
        if end == off or end >= len(raw):
            raise MalformedSyslogMessage('missing SD-PARAM name')
        key = raw[off:end].decode('utf-8', errors='replace')
        off = cls._expect(raw, end, b'=')
        off = cls._expect(raw, off, b'"')
        value = bytearray()
        escaped = False
        while True:
            if off >= len(raw):
                raise MalformedSyslogMessage('unterminated SD-PARAM value')
            b = raw[off]
            if escaped:
                value.append(b)
                escaped = False
            elif b == ord('\\'):
                escaped = True
            elif b == ord('"'):
                break
            else:
                value.append(b)
            off += 1
        off = cls._expect(raw, off, b'"')
        return off, SyslogSDParam(key, value.decode('utf-8', errors='replace'))
