"""TCP server speaking RESP for PING, GET and SET."""

import contextlib
import logging
import socket
import threading
from typing import Optional

from commands import Command, Get, Ping, Set, Unknown, WrongArity, parse_command
from kv_store import KVStore
from protocol import (
    NULL,
    Bulk,
    ErrorReply,
    ProtocolError,
    Reader,
    Reply,
    Status,
    encode_reply,
    read_command,
)

logger = logging.getLogger(__name__)


def execute(command: Command, store: KVStore) -> Reply:
    """Run one parsed command against the store and build its reply."""
    if isinstance(command, Ping):
        return Status("PONG")
    if isinstance(command, Get):
        value = store.get(command.key)
        return NULL if value is None else Bulk(value)
    if isinstance(command, Set):
        store.set(command.key, command.value)
        return Status("OK")
    if isinstance(command, WrongArity):
        return ErrorReply(f"wrong number of arguments for '{command.name}' command")
    if isinstance(command, Unknown):
        verb = command.verb.decode("utf-8", errors="backslashreplace")
        return ErrorReply(f"unknown command '{verb}'")
    raise TypeError(f"not a command: {command!r}")


def serve_connection(conn: socket.socket, store: KVStore) -> None:
    """Answer commands on one connection until the peer closes it.

    A malformed frame gets a best-effort ``-Protocol error`` reply, then the
    ProtocolError propagates; the connection is always closed on return.
    """
    reader = Reader(conn.makefile("rb"))
    try:
        while True:
            try:
                args = read_command(reader)
            except ProtocolError as e:
                with contextlib.suppress(OSError):
                    conn.sendall(encode_reply(ErrorReply(f"Protocol error: {e}")))
                raise
            if args is None:
                break
            conn.sendall(encode_reply(execute(parse_command(args), store)))
    finally:
        reader.close()
        conn.close()


def handle_client(conn: socket.socket, addr, store: KVStore) -> None:
    """Thread target: serve one connection and log how it ended."""
    logger.debug("connection from %s", addr)
    try:
        serve_connection(conn, store)
    except ProtocolError as e:
        logger.warning("closing connection from %s: protocol error: %s", addr, e)
    except (ConnectionResetError, BrokenPipeError) as e:
        logger.debug("connection from %s reset: %s", addr, e)
    except OSError as e:
        logger.warning("closing connection from %s: transport error: %s", addr, e)
    else:
        logger.debug("connection from %s closed", addr)


def run_server(
    host: str = "127.0.0.1",
    port: int = 6379,
    store: Optional[KVStore] = None,
) -> None:
    """Run the RESP TCP server, one thread per connection."""
    if store is None:
        store = KVStore()
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    server.bind((host, port))
    server.listen(64)
    logger.info("listening on %s:%d", host, port)
    try:
        while True:
            conn, addr = server.accept()
            t = threading.Thread(target=handle_client, args=(conn, addr, store))
            t.daemon = True
            t.start()
    finally:
        server.close()


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser()
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=6379)
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        run_server(host=args.host, port=args.port)
    except KeyboardInterrupt:
        logger.info("shutting down")
