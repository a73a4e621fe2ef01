from dataclasses import dataclass
from typing import Any, Tuple
import socket


@dataclass(frozen=True)
class Message:
    """
    One chat line travelling through the hub.

    `text` is the fully framed line (`"<sender>: <body>\n"`), so the
    delivery side can write it out verbatim.
    """
    text: str
    sender: str


@dataclass
class ClientSession:
    """
    Per-connection state, kept only in memory.

    Created once the username line has been read. The socket is owned by
    the session; `reader` is only touched by the handler thread and
    `writer` only by the delivery thread.
    """
    username: str
    sock: socket.socket
    addr: Tuple[str, int]
    reader: Any  # text-mode file wrapper (makefile("r"))
    writer: Any  # text-mode file wrapper (makefile("w"))
    subscription: Any  # hub.Subscription
