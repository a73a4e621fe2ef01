import queue
import socket
import sys
import threading
from typing import Optional, Tuple

from console import notice, error, paint, GREEN, RED, YELLOW
from protocol import open_line_files, read_frame, write_frame

# How long to wait for the stdin thread on the way out. It's usually stuck
# in a blocking read nobody can interrupt, so don't wait for long.
STDIN_JOIN_TIMEOUT = 0.2


def parse_address(address: str) -> Tuple[str, int]:
    """
    'host:port' -> (host, port). IPv6 hosts may be wrapped in brackets.

    Raises ValueError on anything else.
    """
    host, sep, port_str = address.rpartition(":")
    if not sep or not host or not port_str.isdigit():
        raise ValueError(f"invalid address '{address}', expected host:port")

    port = int(port_str)
    if port > 65535:
        raise ValueError(f"invalid port in '{address}'")

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, port


def render_line(line: str, username: str) -> str:
    """Highlight lines that mention @<username>, leave the rest alone."""
    if f"@{username}" in line:
        return paint(line, YELLOW, bright=True)
    return line


def receiver_loop(reader, username: str, finished: threading.Event,
                  stopping: Optional[threading.Event] = None) -> None:
    """Prints anything the server sends until EOF or an error."""
    try:
        while True:
            try:
                line = read_frame(reader)
            except (OSError, ValueError) as e:
                if stopping is None or not stopping.is_set():
                    error(f"Error reading from server: {e}")
                return

            if line is None:
                if stopping is None or not stopping.is_set():
                    notice("Connection closed by server", RED)
                return

            if line:
                print(render_line(line, username), flush=True)
    finally:
        finished.set()


def stdin_loop(stream, outbox: queue.Queue,
               stopping: Optional[threading.Event] = None) -> None:
    """
    Blocking reads from stdin, pushed onto the outbox.

    Runs on its own daemon thread since stdin reads can't be interrupted.
    """
    try:
        for raw in iter(stream.readline, ""):
            if stopping is not None and stopping.is_set():
                break
            message = raw.strip()
            if message:
                outbox.put(message)
    except (OSError, ValueError) as e:
        # ValueError: stdin got closed while we were reading it
        error(f"Error reading input: {e}")


def writer_loop(writer, outbox: queue.Queue, finished: threading.Event) -> None:
    """Drains the outbox into the socket. A None in the queue means stop."""
    try:
        while True:
            message = outbox.get()
            if message is None:
                return
            try:
                write_frame(writer, message)
            except OSError:
                return
    finally:
        finished.set()


def run_client(address: str, username: str, stdin=None) -> int:
    """
    Connect, send the username, then run the reader / stdin / writer trio
    until either the reader or the writer is done.

    Connection errors (OSError, ValueError for a bad address) are raised
    to the caller.
    """
    if stdin is None:
        stdin = sys.stdin

    host, port = parse_address(address)
    sock = socket.create_connection((host, port))
    notice(f"Connected to server at {address}", GREEN)

    reader, writer = open_line_files(sock)
    try:
        write_frame(writer, username)

        outbox: queue.Queue = queue.Queue()
        finished = threading.Event()
        stopping = threading.Event()

        rx = threading.Thread(
            target=receiver_loop,
            args=(reader, username, finished, stopping),
            daemon=True,
        )
        tx = threading.Thread(
            target=writer_loop,
            args=(writer, outbox, finished),
            daemon=True,
        )
        keyboard = threading.Thread(
            target=stdin_loop,
            args=(stdin, outbox, stopping),
            daemon=True,
        )
        rx.start()
        tx.start()
        keyboard.start()

        try:
            finished.wait()
        except KeyboardInterrupt:
            pass

        # first one out cancels the other
        stopping.set()
        outbox.put(None)
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass

        rx.join()
        tx.join()
        keyboard.join(timeout=STDIN_JOIN_TIMEOUT)
    finally:
        for f in (reader, writer, sock):
            try:
                f.close()
            except OSError:
                pass

    return 0
