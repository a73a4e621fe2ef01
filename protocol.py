import socket
from typing import Optional, Tuple, Any

ENCODING = "utf-8"


def open_line_files(sock: socket.socket) -> Tuple[Any, Any]:
    """
    Wrap a connected socket in a (reader, writer) pair of text files.

    Bad UTF-8 from the peer is replaced rather than blowing up the reader.
    """
    reader = sock.makefile("r", encoding=ENCODING, errors="replace", newline="\n")
    writer = sock.makefile("w", encoding=ENCODING, errors="replace", newline="\n")
    return reader, writer


def read_frame(reader) -> Optional[str]:
    """
    Read one newline-terminated frame and return it trimmed.

    Returns None on EOF. A frame made of whitespace comes back as "".
    Socket errors propagate as OSError.
    """
    raw = reader.readline()
    if not raw:
        return None
    return raw.strip()


def write_frame(writer, line: str) -> None:
    """Write `line` plus the terminating newline and flush it out."""
    writer.write(line + "\n")
    writer.flush()


def welcome_line(username: str) -> str:
    return f"Welcome to the chat, {username}!"


def format_chat_line(username: str, body: str) -> str:
    """The framed form a line takes when it is rebroadcast to peers."""
    return f"{username}: {body}\n"
