"""The supported command set, parsed once from a decoded argument list."""

from dataclasses import dataclass
from typing import Sequence, Union


@dataclass(frozen=True)
class Ping:
    def to_args(self) -> list[bytes]:
        return [b"PING"]


@dataclass(frozen=True)
class Get:
    key: bytes

    def to_args(self) -> list[bytes]:
        return [b"GET", self.key]


@dataclass(frozen=True)
class Set:
    key: bytes
    value: bytes

    def to_args(self) -> list[bytes]:
        return [b"SET", self.key, self.value]


@dataclass(frozen=True)
class Unknown:
    """Verb not in the command table; kept as sent."""

    verb: bytes


@dataclass(frozen=True)
class WrongArity:
    """Known verb called with the wrong number of arguments."""

    name: str


Command = Union[Ping, Get, Set, Unknown, WrongArity]

# verb -> total argument count, verb included
ARITY = {b"PING": 1, b"GET": 2, b"SET": 3}


def parse_command(args: Sequence[bytes]) -> Command:
    """Map a non-empty argument list onto a command variant. Verbs are case-insensitive."""
    verb = args[0].upper()
    arity = ARITY.get(verb)
    if arity is None:
        return Unknown(args[0])
    if len(args) != arity:
        return WrongArity(verb.decode("ascii"))
    if verb == b"PING":
        return Ping()
    if verb == b"GET":
        return Get(args[1])
    return Set(args[1], args[2])
