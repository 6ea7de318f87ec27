"""RESP wire codec: commands as arrays of bulk strings, replies as tagged frames."""

import io
import re
from dataclasses import dataclass
from typing import BinaryIO, Iterable, Optional, Union

CRLF = b"\r\n"

MAX_BULK_LENGTH = 512 * 1024 * 1024
MAX_ARGUMENTS = 1024 * 1024
MAX_LINE_LENGTH = 64 * 1024

# wide enough for any signed 64-bit value; longer fields are rejected before int()
_MAX_DIGITS = 20

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

_LENGTH_RE = re.compile(rb"[0-9]+")
_INTEGER_RE = re.compile(rb"[+-]?[0-9]+")


class EncodeError(ValueError):
    """An in-memory value cannot be represented on the wire."""


class EmptyCommandError(EncodeError):
    def __init__(self) -> None:
        super().__init__("command must have at least one argument")


class ProtocolError(Exception):
    """Malformed or truncated wire data. The stream position is undefined afterwards."""


class MalformedLengthError(ProtocolError):
    pass


class UnexpectedEofError(ProtocolError):
    def __init__(self, message: str = "unexpected end of stream") -> None:
        super().__init__(message)


class UnknownTypeTagError(ProtocolError):
    def __init__(self, tag: bytes) -> None:
        super().__init__(f"unknown type tag {tag!r}")
        self.tag = tag


class TerminatorMismatchError(ProtocolError):
    def __init__(self, message: str = "expected CRLF terminator") -> None:
        super().__init__(message)


class UnexpectedFrameError(ProtocolError):
    """A known type tag showed up where the grammar does not allow it."""


class UnexpectedReplyShapeError(ProtocolError):
    """A well-formed reply of a variant the caller did not expect."""


@dataclass(frozen=True)
class Status:
    text: str


@dataclass(frozen=True)
class ErrorReply:
    message: str


@dataclass(frozen=True)
class Integer:
    value: int


@dataclass(frozen=True)
class Bulk:
    data: bytes


@dataclass(frozen=True)
class Null:
    pass


NULL = Null()

Reply = Union[Status, ErrorReply, Integer, Bulk, Null]

ArgLike = Union[bytes, bytearray, memoryview, str, int]


def to_bytes(arg: ArgLike) -> bytes:
    # bool is an int subclass but "True" on the wire is never what a caller means
    if isinstance(arg, bool):
        raise EncodeError(f"cannot encode argument of type {type(arg).__name__}")
    if isinstance(arg, (bytes, bytearray, memoryview)):
        return bytes(arg)
    if isinstance(arg, str):
        return arg.encode("utf-8")
    if isinstance(arg, int):
        return str(arg).encode("ascii")
    raise EncodeError(f"cannot encode argument of type {type(arg).__name__}")


def _bulk(data: bytes) -> bytes:
    return b"$%d\r\n%s\r\n" % (len(data), data)


def encode_command(args: Iterable[ArgLike]) -> bytes:
    """Encode a command as an array of bulk strings."""
    parts = [to_bytes(arg) for arg in args]
    if not parts:
        raise EmptyCommandError()
    return b"*%d\r\n" % len(parts) + b"".join(_bulk(p) for p in parts)


def _line(tag: bytes, text: str) -> bytes:
    data = text.encode("utf-8")
    if b"\r" in data or b"\n" in data:
        raise EncodeError(f"{tag.decode()} line must not contain CR or LF: {text!r}")
    return tag + data + CRLF


def encode_reply(reply: Reply) -> bytes:
    """Encode a single reply value."""
    if isinstance(reply, Status):
        return _line(b"+", reply.text)
    if isinstance(reply, ErrorReply):
        return _line(b"-", reply.message)
    if isinstance(reply, Integer):
        if isinstance(reply.value, bool) or not isinstance(reply.value, int):
            raise EncodeError(f"integer reply must hold an int, got {reply.value!r}")
        if not _INT64_MIN <= reply.value <= _INT64_MAX:
            raise EncodeError(f"integer reply out of 64-bit range: {reply.value}")
        return b":%d\r\n" % reply.value
    if isinstance(reply, Bulk):
        return _bulk(bytes(reply.data))
    if isinstance(reply, Null):
        return b"$-1\r\n"
    raise EncodeError(f"not a reply value: {reply!r}")


class Reader:
    """Cursor over a binary stream.

    Only ever consumes the bytes of the frame being decoded, so a following
    frame stays in the stream for the next call. Wraps anything with
    ``read(n)`` and ``readline()``: ``socket.makefile("rb")``, ``io.BytesIO``.
    """

    def __init__(self, stream: BinaryIO):
        self._stream = stream

    @classmethod
    def from_bytes(cls, data: bytes) -> "Reader":
        return cls(io.BytesIO(data))

    def read_tag(self) -> bytes:
        """Return the next byte, or b"" if the stream ended at a frame boundary."""
        return self._stream.read(1)

    def read_exact(self, n: int) -> bytes:
        chunks = []
        remaining = n
        while remaining > 0:
            chunk = self._stream.read(remaining)
            if not chunk:
                raise UnexpectedEofError(f"stream ended with {remaining} of {n} bytes unread")
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)

    def read_line(self) -> bytes:
        """Read up to and including CRLF; return the content without it."""
        line = self._stream.readline(MAX_LINE_LENGTH + 2)
        if not line.endswith(b"\n"):
            if len(line) >= MAX_LINE_LENGTH + 2:
                raise TerminatorMismatchError(f"line exceeds {MAX_LINE_LENGTH} bytes")
            raise UnexpectedEofError()
        if not line.endswith(CRLF) or b"\r" in line[:-2]:
            raise TerminatorMismatchError()
        return line[:-2]

    def expect_crlf(self) -> None:
        if self.read_exact(2) != CRLF:
            raise TerminatorMismatchError()

    def close(self) -> None:
        self._stream.close()


def _parse_length(raw: bytes, what: str, limit: int) -> int:
    if len(raw) > _MAX_DIGITS or not _LENGTH_RE.fullmatch(raw):
        raise MalformedLengthError(f"invalid {what} length")
    value = int(raw)
    if value > limit:
        raise MalformedLengthError(f"invalid {what} length")
    return value


def _parse_integer(raw: bytes) -> int:
    if len(raw) > _MAX_DIGITS + 1 or not _INTEGER_RE.fullmatch(raw):
        raise MalformedLengthError("invalid integer")
    value = int(raw)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise MalformedLengthError("invalid integer")
    return value


def _decode_text(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")


def _read_bulk_body(reader: Reader, length: int) -> bytes:
    data = reader.read_exact(length)
    reader.expect_crlf()
    return data


def read_reply(reader: Reader) -> Reply:
    """Decode exactly one reply from the reader."""
    tag = reader.read_tag()
    if not tag:
        raise UnexpectedEofError("stream ended before a reply")
    if tag == b"+":
        return Status(_decode_text(reader.read_line()))
    if tag == b"-":
        return ErrorReply(_decode_text(reader.read_line()))
    if tag == b":":
        return Integer(_parse_integer(reader.read_line()))
    if tag == b"$":
        raw = reader.read_line()
        if raw == b"-1":
            return NULL
        return Bulk(_read_bulk_body(reader, _parse_length(raw, "bulk", MAX_BULK_LENGTH)))
    if tag == b"*":
        raise UnexpectedFrameError("array replies are not supported")
    raise UnknownTypeTagError(tag)


def read_command(reader: Reader) -> Optional[list[bytes]]:
    """Decode one command frame.

    Returns None when the stream ends cleanly before a new frame starts.
    """
    tag = reader.read_tag()
    if not tag:
        return None
    if tag != b"*":
        if tag in b"+-:$":
            raise UnexpectedFrameError(f"expected '*', got {tag.decode()!r}")
        raise UnknownTypeTagError(tag)

    argc = _parse_length(reader.read_line(), "multibulk", MAX_ARGUMENTS)
    if argc == 0:
        raise MalformedLengthError("invalid multibulk length")

    args = []
    for _ in range(argc):
        tag = reader.read_tag()
        if not tag:
            raise UnexpectedEofError()
        if tag != b"$":
            if tag in b"+-:*":
                raise UnexpectedFrameError(f"expected '$', got {tag.decode()!r}")
            raise UnknownTypeTagError(tag)
        length = _parse_length(reader.read_line(), "bulk", MAX_BULK_LENGTH)
        args.append(_read_bulk_body(reader, length))
    return args


def decode_reply(data: bytes) -> Reply:
    return read_reply(Reader.from_bytes(data))


def decode_command(data: bytes) -> Optional[list[bytes]]:
    return read_command(Reader.from_bytes(data))
