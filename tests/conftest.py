import socket
import threading
import time
from typing import List, Optional

import pytest

from hub import Hub
from server import open_listener, serve_forever


class Peer:
    """
    Raw test client. Keeps its own line buffer so a read timeout doesn't
    poison the socket for later reads.
    """

    def __init__(self, port: int) -> None:
        self.sock = socket.create_connection(("127.0.0.1", port), timeout=5)
        self._buf = b""
        self.eof = False

    def send(self, data: bytes) -> None:
        self.sock.sendall(data)

    def send_line(self, text: str) -> None:
        self.send(text.encode("utf-8") + b"\n")

    def read_line(self, timeout: float = 2.0) -> Optional[str]:
        """Next full line including '\\n', or None on timeout / EOF."""
        deadline = time.monotonic() + timeout
        while b"\n" not in self._buf:
            remaining = deadline - time.monotonic()
            if remaining <= 0 or self.eof:
                return None
            self.sock.settimeout(remaining)
            try:
                chunk = self.sock.recv(4096)
            except socket.timeout:
                return None
            if not chunk:
                self.eof = True
                return None
            self._buf += chunk
        line, self._buf = self._buf.split(b"\n", 1)
        return line.decode("utf-8") + "\n"

    def join(self, username: str) -> Optional[str]:
        """Send the username and return whatever came back first."""
        self.send_line(username)
        return self.read_line()

    def close(self) -> None:
        try:
            self.sock.close()
        except OSError:
            pass


def wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def chat_server():
    """Live server on an ephemeral port. Yields (port, hub)."""
    hub = Hub()
    srv = open_listener("127.0.0.1", 0)
    port = srv.getsockname()[1]
    t = threading.Thread(target=serve_forever, args=(srv, hub), daemon=True)
    t.start()
    yield port, hub
    # the accept thread is a daemon; it goes away with the test process
    srv.close()


@pytest.fixture
def connect(chat_server):
    port, _ = chat_server
    peers: List[Peer] = []

    def _connect() -> Peer:
        peer = Peer(port)
        peers.append(peer)
        return peer

    yield _connect

    for peer in peers:
        peer.close()
