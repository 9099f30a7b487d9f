import logging
import re
import socket
from enum import IntEnum
from typing import BinaryIO, Callable, Dict, List, Optional, Pattern, Tuple, Union

from .syslog_message import SyslogMessage, UndecodedSyslogMessage
from .syslog_parser import SyslogParser

logger = logging.getLogger(__name__)


class DecoderState(IntEnum):
    """States of the syslog framing state machine"""
    FRAMING = 0
    IMPLICIT_FRAMING = 1
    IMPLICIT_FRAMING_MESSAGE = 2
    OCTET_FRAMING_HEADER = 3
    OCTET_FRAMING = 4
    OCTET_FRAMING_MESSAGE = 5
    UNKNOWN = 6
    UNKNOWN_MESSAGE = 7


class SyslogDecoder:
    """
    Decode syslog messages from a byte stream.

    Handles both implicit (newline terminated) and octet counted
    (RFC 6587) framing, auto-detected per message. Input not starting
    a frame is skipped until a plausible frame start is found. Skipped
    input is emitted as undecoded message once it exceeds DECODE_LIMIT
    bytes, so every full block of DECODE_LIMIT + 1 unframed bytes
    yields one undecoded message. A shorter remainder followed by a
    frame start is dropped with a debug log; at flush() it is emitted.

    A decoder instance belongs to exactly one connection or socket
    and is not thread-safe.
    """

    DECODE_LIMIT = 0x7fff
    READ_SIZE = 4096
    DATAGRAM_SIZE = 65535

    FRAME_START: Pattern[bytes] = re.compile(rb'[<1-9]')

    def __init__(self) -> None:
        self.buffer: bytearray = bytearray()
        self.state: DecoderState = DecoderState.FRAMING
        self.decoding: bytearray = bytearray()
        self.octets: int = 0
        self.octets_remaining: int = 0
        self._steps: Dict[DecoderState, Callable[[], Optional[SyslogMessage]]] = {
            DecoderState.FRAMING: self._decode_framing,
            DecoderState.IMPLICIT_FRAMING: self._decode_implicit_framing,
            DecoderState.IMPLICIT_FRAMING_MESSAGE: self._decode_implicit_framing_message,
            DecoderState.OCTET_FRAMING_HEADER: self._decode_octet_framing_header,
            DecoderState.OCTET_FRAMING: self._decode_octet_framing,
            DecoderState.OCTET_FRAMING_MESSAGE: self._decode_octet_framing_message,
            DecoderState.UNKNOWN: self._decode_unknown,
            DecoderState.UNKNOWN_MESSAGE: self._decode_unknown_message,
        }

    def reset(self) -> None:
        """Revert to the initial state, dropping any buffered data"""
        self.buffer.clear()
        self._reset_frame()

    def feed(self, data: bytes) -> None:
        """Add the given bytes to the decode buffer"""
        self.buffer += data

    def read(self, reader: Union[socket.socket, BinaryIO]) -> int:
        """
        Read one chunk from a stream socket or binary stream into
        the decode buffer. Returns the number of bytes read; 0 signals
        the end of the stream.
        """
        if isinstance(reader, socket.socket):
            data = reader.recv(self.READ_SIZE)
        elif hasattr(reader, 'read1'):
            data = reader.read1(self.READ_SIZE)
        else:
            data = reader.read(self.READ_SIZE)
        self.feed(data)
        return len(data)

    def read_from(self, sock: socket.socket) -> Tuple[int, Tuple]:
        """
        Receive exactly one datagram into the decode buffer.
        Returns the number of bytes received and the sender address.
        """
        data, address = sock.recvfrom(self.DATAGRAM_SIZE)
        self.feed(data)
        return len(data), address

    def decode(self) -> List[SyslogMessage]:
        """Decode all fully received syslog messages from the decode buffer"""
        messages: List[SyslogMessage] = []

        while True:
            message = self._decode_one()
            if message is None:
                break
            messages.append(message)

        return messages

    def flush(self) -> List[SyslogMessage]:
        """
        Decode all fully received messages and treat any remaining
        partial frame as complete. Used at datagram boundaries, where
        a sender may omit the trailing newline.
        """
        messages = self.decode()
        if self.state == DecoderState.IMPLICIT_FRAMING and self.buffer:
            self.decoding += self.buffer
            self.buffer.clear()
            messages.append(self._decode_message(0))
        else:
            partial = bytes(self.decoding + self.buffer)
            if partial:
                logger.debug(f"Flushing {len(partial)} bytes of incomplete input")
                messages.append(UndecodedSyslogMessage(partial))
        self.reset()
        return messages

    def _decode_one(self) -> Optional[SyslogMessage]:
        """Internal: Run the state machine until a message is complete or input is exhausted"""
        while True:
            old_state = self.state
            message = self._steps[self.state]()
            if message is not None:
                return message
            if self.state == old_state:
                # Need more data
                return None

    def _decode_framing(self) -> None:
        if not self.buffer:
            return
        next_byte = self.buffer[0]
        self._reset_frame()
        if next_byte == ord('<'):
            self.state = DecoderState.IMPLICIT_FRAMING
        elif ord('1') <= next_byte <= ord('9'):
            self.state = DecoderState.OCTET_FRAMING_HEADER
        else:
            self.state = DecoderState.UNKNOWN

    def _decode_implicit_framing(self) -> None:
        end = self.buffer.find(b'\n')
        if end < 0:
            return
        self._take(end + 1)
        self.state = DecoderState.IMPLICIT_FRAMING_MESSAGE

    def _decode_implicit_framing_message(self) -> SyslogMessage:
        return self._decode_message(0)

    def _decode_octet_framing_header(self) -> None:
        while self.buffer:
            next_byte = self.buffer[0]
            if next_byte == ord(' '):
                self._take(1)
                self.octets_remaining = self.octets
                self.state = DecoderState.OCTET_FRAMING
                return
            if not ord('0') <= next_byte <= ord('9'):
                # Left in the buffer; it may start the next frame
                self.state = DecoderState.UNKNOWN
                return
            self._take(1)
            self.octets = 10 * self.octets + (next_byte - ord('0'))
            if self.octets > self.DECODE_LIMIT:
                logger.warning(f"Octet count exceeds {self.DECODE_LIMIT}, resynchronizing")
                self.state = DecoderState.UNKNOWN
                return

    def _decode_octet_framing(self) -> None:
        self.octets_remaining -= self._take(self.octets_remaining)
        if self.octets_remaining <= 0:
            self.state = DecoderState.OCTET_FRAMING_MESSAGE

    def _decode_octet_framing_message(self) -> SyslogMessage:
        return self._decode_message(len(self.decoding) - self.octets)

    def _decode_unknown(self) -> None:
        match = self.FRAME_START.search(self.buffer)
        end = match.start() if match else len(self.buffer)
        room = self.DECODE_LIMIT + 1 - len(self.decoding)
        taken = self._take(min(end, room))
        if len(self.decoding) > self.DECODE_LIMIT:
            logger.warning(f"Unframed input exceeds {self.DECODE_LIMIT} bytes")
            self.state = DecoderState.UNKNOWN_MESSAGE
        elif match and taken == end:
            if self.decoding:
                logger.debug(f"Skipped {len(self.decoding)} bytes of unframed input")
            self.state = DecoderState.FRAMING

    def _decode_unknown_message(self) -> SyslogMessage:
        message = UndecodedSyslogMessage(bytes(self.decoding))
        self._reset_frame()
        return message

    def _decode_message(self, off: int) -> SyslogMessage:
        message = SyslogParser.parse(bytes(self.decoding), off)
        self._reset_frame()
        return message

    def _take(self, count: int) -> int:
        """Internal: Move up to count bytes from the buffer to the message in progress"""
        taken = self.buffer[:count]
        del self.buffer[:count]
        self.decoding += taken
        return len(taken)

    def _reset_frame(self) -> None:
        self.state = DecoderState.FRAMING
        self.decoding = bytearray()
        self.octets = 0
        self.octets_remaining = 0
