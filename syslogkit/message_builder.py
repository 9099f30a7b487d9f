import threading
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple


class MessageBuilder:
    """
    Scratch buffer used to encode a single syslog message.

    Besides plain appends the builder supports one pending conditional
    string: it is written right before the next non-empty append, or
    never if nothing follows. complete_conditional() closes the section
    with one of two strings depending on which case happened.

    Attribute groups are tracked as a stack of dot-joined path prefixes.
    """

    def __init__(self) -> None:
        self.buffer: bytearray = bytearray()
        self.conditional: str = ''
        self.groups: List[str] = []
        self.paths: List[str] = []

    def __enter__(self) -> 'MessageBuilder':
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> bool:
        self.release()
        return False

    def reset(self) -> None:
        self.buffer.clear()
        self.conditional = ''
        self.groups.clear()
        self.paths.clear()

    def release(self) -> None:
        """Clear the builder and hand it back to the pool"""
        self.reset()
        _pool.put(self)

    def append_conditional(self, s: str) -> 'MessageBuilder':
        self.conditional = s
        return self

    def complete_conditional(self, yes: str, no: str) -> bool:
        fired = self.conditional == ''
        if fired:
            self.append_string(yes)
        else:
            self.conditional = ''
            self.append_string(no)
        return fired

    def _write_conditional(self) -> None:
        if self.conditional:
            self.buffer += self.conditional.encode('utf-8')
            self.conditional = ''

    def append_string(self, s: str) -> 'MessageBuilder':
        if s:
            self._write_conditional()
            self.buffer += s.encode('utf-8')
        return self

    def append_bytes(self, b: bytes) -> 'MessageBuilder':
        if b:
            self._write_conditional()
            self.buffer += b
        return self

    def append_attrs(self, attrs: Iterable[Tuple[str, Any]],
                     handle: Callable[[str, Any], None]) -> None:
        """
        Walk the given attributes, descending into mapping values as
        named groups. Groups with an empty name are inlined.
        """
        for key, value in attrs:
            if isinstance(value, Mapping):
                self.push_group(key)
                try:
                    self.append_attrs(value.items(), handle)
                finally:
                    self.pop_group(key)
            elif key:
                handle(key, value)

    def push_group(self, group: str) -> None:
        if group:
            parent = self.paths[-1] if self.paths else ''
            self.groups.append(group)
            self.paths.append(f'{parent}{group}.')

    def pop_group(self, group: str) -> None:
        if group:
            self.groups.pop()
            self.paths.pop()

    @property
    def group_path(self) -> str:
        return self.paths[-1] if self.paths else ''

    def getvalue(self) -> bytes:
        return bytes(self.buffer)

    def frame(self, implicit: bool) -> bytes:
        """
        Return the framed message: newline terminated for implicit
        framing, prefixed with its exact byte count otherwise.
        """
        payload = bytes(self.buffer)
        if implicit:
            return payload + b'\n'
        return str(len(payload)).encode('ascii') + b' ' + payload


class MessageBuilderPool:
    """Free list of MessageBuilder instances shared by all handlers"""

    def __init__(self, max_size: int = 16) -> None:
        self.max_size: int = max_size
        self._free: List[MessageBuilder] = []
        self._lock: threading.Lock = threading.Lock()

    def get(self, groups: Optional[Iterable[str]] = None) -> MessageBuilder:
        with self._lock:
            builder = self._free.pop() if self._free else None
        if builder is None:
            builder = MessageBuilder()
        for group in groups or ():
            builder.push_group(group)
        return builder

    def put(self, builder: MessageBuilder) -> None:
        with self._lock:
            if len(self._free) < self.max_size:
                self._free.append(builder)


_pool = MessageBuilderPool()


def get_message_builder(groups: Optional[Iterable[str]] = None) -> MessageBuilder:
    """Get a cleared builder from the shared pool, already nested in the given groups"""
    return _pool.get(groups)
