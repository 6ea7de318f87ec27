"""Client for the RESP key-value server."""

import logging
import socket
import sys
from typing import Optional

from commands import Get, Ping, Set
from protocol import (
    ArgLike,
    Bulk,
    ErrorReply,
    Null,
    ProtocolError,
    Reader,
    Reply,
    Status,
    UnexpectedReplyShapeError,
    encode_command,
    read_reply,
    to_bytes,
)

logger = logging.getLogger(__name__)


class ReplyError(RuntimeError):
    """The server answered with an error reply."""


class SessionBrokenError(RuntimeError):
    """A previous request failed mid-exchange; the connection must be closed."""


class RespClient:
    """One connection, one request in flight. Methods: ping(), get(key), set(key, value)."""

    def __init__(self, sock: socket.socket):
        self._sock = sock
        self._reader = Reader(sock.makefile("rb"))
        self._broken = False

    @classmethod
    def connect(cls, host: str = "127.0.0.1", port: int = 6379, timeout: float = 10.0) -> "RespClient":
        return cls(socket.create_connection((host, port), timeout=timeout))

    def request(self, *args: ArgLike) -> Reply:
        """Send one command and return its decoded reply."""
        if self._broken:
            raise SessionBrokenError("session is unusable after a failed request")
        payload = encode_command(args)
        logger.debug("request %r (%d bytes)", args[0], len(payload))
        try:
            self._sock.sendall(payload)
            return read_reply(self._reader)
        except (ProtocolError, OSError):
            self._broken = True
            raise

    def ping(self) -> Reply:
        reply = self.request(*Ping().to_args())
        if isinstance(reply, ErrorReply):
            raise ReplyError(reply.message)
        if reply != Status("PONG"):
            raise UnexpectedReplyShapeError(f"PING expected +PONG, got {reply!r}")
        return reply

    def get(self, key: ArgLike) -> Optional[bytes]:
        """Get value for key. Returns None if key does not exist."""
        reply = self.request(*Get(to_bytes(key)).to_args())
        if isinstance(reply, Bulk):
            return reply.data
        if isinstance(reply, Null):
            return None
        if isinstance(reply, ErrorReply):
            raise ReplyError(reply.message)
        raise UnexpectedReplyShapeError(f"GET expected a bulk or null reply, got {reply!r}")

    def set(self, key: ArgLike, value: ArgLike) -> None:
        """Set key to value."""
        reply = self.request(*Set(to_bytes(key), to_bytes(value)).to_args())
        if isinstance(reply, ErrorReply):
            raise ReplyError(reply.message)
        if reply != Status("OK"):
            raise UnexpectedReplyShapeError(f"SET expected +OK, got {reply!r}")

    def close(self) -> None:
        try:
            self._reader.close()
        finally:
            self._sock.close()

    def __enter__(self) -> "RespClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def main(argv: Optional[list[str]] = None) -> int:
    import argparse
    parser = argparse.ArgumentParser(description="Talk to a RESP key-value server.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=6379)
    parser.add_argument("--timeout", type=float, default=10.0)
    sub = parser.add_subparsers(dest="cmd", required=True)
    sub.add_parser("ping")
    p_get = sub.add_parser("get")
    p_get.add_argument("key")
    p_set = sub.add_parser("set")
    p_set.add_argument("key")
    p_set.add_argument("value")
    args = parser.parse_args(argv)

    with RespClient.connect(args.host, args.port, timeout=args.timeout) as client:
        try:
            if args.cmd == "ping":
                print(client.ping().text)
            elif args.cmd == "get":
                value = client.get(args.key)
                print("(nil)" if value is None else value.decode("utf-8", errors="backslashreplace"))
            else:
                client.set(args.key, args.value)
                print("OK")
        except ReplyError as e:
            print(f"(error) {e}")
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
