import logging
import os
import re
import socket
import sys
from datetime import datetime
from enum import Enum
from typing import Any, Callable, List, Mapping, Match, Optional, Pattern, Tuple, Union

from .message_builder import MessageBuilder, get_message_builder
from .syslog_parser import MONTHS, NILVALUE
from .syslog_writer import SyslogWriter

logger = logging.getLogger(__name__)

# Record attribute holding the RFC 5424 MSGID
SYSLOG_KEY = 'syslog'

# Important messages not related to an error state, shown even with
# a high level filter
NOTICE = logging.ERROR + 5
logging.addLevelName(NOTICE, 'NOTICE')

DEFAULT_FACILITY = 16  # local0

# SD-ID of the element carrying all record attributes
ATTRS_SD_ID = 'Attrs@1'

# LogRecord attributes which are not user supplied extras
RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}

ReplaceAttr = Callable[[List[str], str, Any], Optional[Tuple[str, Any]]]

_ESCAPE_PATTERN: Pattern[str] = re.compile(r'([\\"\]])')
_CONTROL_PATTERN: Pattern[str] = re.compile(r'[\x00-\x1f\x7f]')
_CONTROL_ESCAPES = {'\n': '\\n', '\r': '\\r', '\t': '\\t'}

# Characters not allowed in MSGID and SD-PARAM names
_NAME_PATTERN: Pattern[str] = re.compile(r'[\s="\]]')


def notice(log: logging.Logger, msg: str, *args: Any, **kwargs: Any) -> None:
    """Emit a log message on the NOTICE level"""
    log.log(NOTICE, msg, *args, **kwargs)


class SyslogEncoding(str, Enum):
    """Supported syslog formats"""
    # RFC5424 + octet framing
    DEFAULT = ''
    # RFC3164 + implicit framing (https://datatracker.ietf.org/doc/html/rfc3164)
    RFC3164 = 'rfc3164'
    # RFC3164 + octet framing
    RFC3164F = 'rfc3164+framing'
    # RFC5424 + implicit framing (https://datatracker.ietf.org/doc/html/rfc5424)
    RFC5424 = 'rfc5424'
    # RFC5424 + octet framing
    RFC5424F = 'rfc5424+framing'


def syslog_severity(level: int) -> int:
    """Map a logging level to the syslog severity"""
    if level == NOTICE:
        return 5
    if level >= logging.ERROR:
        return 3
    if level > logging.INFO:
        return 4
    if level > logging.DEBUG:
        return 6
    return 7


def _escape_control(match: Match[str]) -> str:
    c = match.group()
    return _CONTROL_ESCAPES.get(c, f'\\x{ord(c):02x}')


def quote_param_value(value: Any) -> str:
    """
    Render a value as quoted SD-PARAM value, escaping '\\', '"' and ']'.
    Control characters become backslash escapes, so a value never
    contains a newline ending an implicitly framed message.
    """
    text = _ESCAPE_PATTERN.sub(r'\\\1', str(value))
    return '"' + _CONTROL_PATTERN.sub(_escape_control, text) + '"'


def syslog_name(name: str) -> str:
    """Make a MSGID or SD-PARAM name a single token"""
    return _NAME_PATTERN.sub('_', name) or NILVALUE


def syslog_hostname() -> str:
    try:
        host = socket.gethostname()
    except OSError:
        host = ''
    return host or NILVALUE


def syslog_app_name(app_name: Optional[str] = None) -> str:
    name = (app_name or '').strip()
    if not name:
        name = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else ''
    return name.replace(' ', '_') or NILVALUE


def syslog_proc_id() -> str:
    return str(os.getpid())


class SyslogHandler(logging.Handler):
    """
    Emit log records to a syslog server.

    Each record is encoded into exactly one framed syslog message and
    passed to writer.write(). The writer is usually a SyslogWriter,
    but any object accepting bytes will do.

    Record extras become attributes: RFC 3164 appends them as
    key="value" tags to the message, RFC 5424 collects them in a single
    [Attrs@1 ...] structured data element. Mapping values form groups,
    rendered as dot-joined key prefixes. The 'syslog' extra sets the
    RFC 5424 MSGID instead of being rendered.
    """

    def __init__(self, writer: Any,
                 encoding: Union[SyslogEncoding, str] = SyslogEncoding.RFC5424F,
                 facility: int = DEFAULT_FACILITY,
                 app_name: Optional[str] = None,
                 add_source: bool = False,
                 replace_attr: Optional[ReplaceAttr] = None,
                 level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.writer: Any = writer
        self.encoding: SyslogEncoding = self._check_encoding(encoding)
        self.facility: int = self._check_facility(facility)
        self.app_name: Optional[str] = app_name
        self.add_source: bool = add_source
        self.replace_attr: Optional[ReplaceAttr] = replace_attr
        self.msg_id: str = NILVALUE
        self.prerendered_attrs: List[bytes] = []
        self.groups: List[str] = []
        self.header: str = self._init_header()

    @staticmethod
    def _check_encoding(encoding: Union[SyslogEncoding, str]) -> SyslogEncoding:
        try:
            checked = SyslogEncoding(encoding)
        except ValueError:
            logger.warning(f"Unrecognized syslog encoding {encoding!r}; using default")
            checked = SyslogEncoding.DEFAULT
        if checked == SyslogEncoding.DEFAULT:
            checked = SyslogEncoding.RFC5424F
        return checked

    @staticmethod
    def _check_facility(facility: int) -> int:
        if not 0 <= facility <= 23:
            logger.warning(f"Out-of-range facility value {facility}; using default {DEFAULT_FACILITY}")
            return DEFAULT_FACILITY
        return facility

    @property
    def rfc3164(self) -> bool:
        return self.encoding in (SyslogEncoding.RFC3164, SyslogEncoding.RFC3164F)

    @property
    def implicit_framing(self) -> bool:
        return self.encoding in (SyslogEncoding.RFC3164, SyslogEncoding.RFC5424)

    def _init_header(self) -> str:
        host = syslog_hostname()
        app_name = syslog_app_name(self.app_name)
        proc_id = syslog_proc_id()
        if self.rfc3164:
            return f' {host} {app_name}[{proc_id}]: '
        return f' {host} {app_name} {proc_id} '

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.writer.write(self.encode(record))
        except RecursionError:
            raise
        except Exception:
            self.handleError(record)

    def encode(self, record: logging.LogRecord) -> bytes:
        """Encode the record into a single framed syslog message"""
        with get_message_builder(self.groups) as builder:
            if self.rfc3164:
                self._encode_rfc3164(builder, record)
            else:
                self._encode_rfc5424(builder, record)
            return builder.frame(self.implicit_framing)

    def _encode_rfc3164(self, builder: MessageBuilder, record: logging.LogRecord) -> None:
        self._append_pri(builder, record.levelno)
        builder.append_string(self.format_time(record.created))
        builder.append_string(self.header)
        builder.append_string(record.getMessage())
        self._append_attrs(builder, record)

    def _encode_rfc5424(self, builder: MessageBuilder, record: logging.LogRecord) -> None:
        self._append_pri(builder, record.levelno)
        builder.append_string('1 ')
        builder.append_string(self.format_time(record.created))
        builder.append_string(self.header)
        builder.append_string(self._msg_id(record))
        builder.append_conditional(f' [{ATTRS_SD_ID}')
        self._append_attrs(builder, record)
        builder.complete_conditional('] ', ' - ')
        builder.append_string(record.getMessage())

    def _append_pri(self, builder: MessageBuilder, level: int) -> None:
        pri = (self.facility << 3) | syslog_severity(level)
        builder.append_string(f'<{pri}>')

    def format_time(self, created: float) -> str:
        """Format a record timestamp according to the encoding's layout"""
        t = datetime.fromtimestamp(created).astimezone()
        if self.rfc3164:
            return f'{MONTHS[t.month - 1]} {t.day:2d} {t:%H:%M:%S}'
        return t.isoformat(timespec='microseconds')

    def _msg_id(self, record: logging.LogRecord) -> str:
        msg_id = getattr(record, SYSLOG_KEY, None)
        if msg_id is None or isinstance(msg_id, Mapping):
            return self.msg_id
        return syslog_name(str(msg_id))

    def _append_attrs(self, builder: MessageBuilder, record: logging.LogRecord) -> None:
        if self.add_source:
            self._render_attr(builder, [], '', 'source', f'{record.pathname}:{record.lineno}')
        for prerendered in self.prerendered_attrs:
            builder.append_bytes(prerendered)
        extras = [
            (key, value) for key, value in record.__dict__.items()
            if key not in RECORD_ATTRS and not key.startswith('_')
        ]
        builder.append_attrs(extras, self._attr_handler(builder))

    def _attr_handler(self, builder: MessageBuilder,
                      msg_ids: Optional[List[str]] = None) -> Callable[[str, Any], None]:
        def handle(key: str, value: Any) -> None:
            if key == SYSLOG_KEY and msg_ids is not None:
                msg_ids.append(str(value))
                return
            self._render_attr(builder, list(builder.groups), builder.group_path, key, value)
        return handle

    def _render_attr(self, builder: MessageBuilder, groups: List[str],
                     path: str, key: str, value: Any) -> None:
        if self.replace_attr is not None:
            replaced = self.replace_attr(groups, key, value)
            if replaced is None:
                return
            key, value = replaced
        if key == SYSLOG_KEY:
            return
        builder.append_string(' ')
        builder.append_string(syslog_name(path + key))
        builder.append_string('=')
        builder.append_string(quote_param_value(value))

    def with_attrs(self, attrs: Mapping[str, Any]) -> 'SyslogHandler':
        """
        Return a handler rendering the given attributes in front of
        every record's own attributes. A 'syslog' attribute sets the
        default MSGID.
        """
        if not attrs:
            return self
        msg_ids: List[str] = []
        with get_message_builder(self.groups) as builder:
            builder.append_attrs(attrs.items(), self._attr_handler(builder, msg_ids))
            rendered = builder.getvalue()
        clone = self._clone()
        clone.prerendered_attrs.append(rendered)
        if msg_ids and msg_ids[-1]:
            clone.msg_id = syslog_name(msg_ids[-1])
        return clone

    def with_group(self, name: str) -> 'SyslogHandler':
        """Return a handler nesting all subsequent attributes in the named group"""
        if not name:
            return self
        clone = self._clone()
        clone.groups.append(name)
        return clone

    def _clone(self) -> 'SyslogHandler':
        clone = SyslogHandler(
            self.writer,
            encoding=self.encoding,
            facility=self.facility,
            app_name=self.app_name,
            add_source=self.add_source,
            replace_attr=self.replace_attr,
            level=self.level
        )
        clone.msg_id = self.msg_id
        clone.prerendered_attrs = list(self.prerendered_attrs)
        clone.groups = list(self.groups)
        clone.header = self.header
        clone.filters = list(self.filters)
        return clone

    def close(self) -> None:
        try:
            if isinstance(self.writer, SyslogWriter):
                self.writer.close()
        finally:
            super().close()
