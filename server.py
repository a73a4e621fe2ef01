import socket
import threading
from typing import Optional

from console import log, GREEN, CYAN, YELLOW, RED
from hub import Hub, SubscriptionClosed
from models import ClientSession, Message
from protocol import (
    open_line_files,
    read_frame,
    write_frame,
    welcome_line,
    format_chat_line,
)

BIND_HOST = "0.0.0.0"
DEFAULT_PORT = 8080


def peer_name(addr) -> str:
    return f"{addr[0]}:{addr[1]}"


def hang_up(sock: socket.socket) -> None:
    """
    Shut both directions of the socket down.

    This is how one half of a session wakes the other one up: a blocked
    readline() sees EOF and a blocked write fails.
    """
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        # already gone
        pass


def read_loop(session: ClientSession, hub: Hub) -> None:
    """
    Inbound half of a session: client lines -> hub.

    Returns on EOF or on any socket error. Blank lines are dropped.
    """
    while True:
        try:
            line = read_frame(session.reader)
        except OSError:
            return

        if line is None:
            return
        if not line:
            continue

        hub.publish(Message(
            text=format_chat_line(session.username, line),
            sender=session.username,
        ))


def deliver_loop(session: ClientSession) -> None:
    """
    Outbound half of a session, runs on its own thread: hub -> client.

    Skips our own messages. A write error ends the session by hanging up
    the socket, which in turn stops read_loop().
    """
    sub = session.subscription
    reported = 0
    try:
        while True:
            try:
                message = sub.recv()
            except SubscriptionClosed:
                return

            if sub.missed > reported:
                log(f"User '{session.username}' missed "
                    f"{sub.missed - reported} message(s)", YELLOW)
                reported = sub.missed

            if message.sender == session.username:
                continue

            try:
                session.writer.write(message.text)
                session.writer.flush()
            except OSError:
                return
    finally:
        hang_up(session.sock)


def handle_client(sock: socket.socket, addr, hub: Hub) -> None:
    """
    One thread per client. Handles:
    - username handshake + welcome line
    - spawning the delivery thread
    - the inbound read loop
    - cleanup on disconnect
    """
    peer = peer_name(addr)
    subscription = hub.subscribe()
    reader, writer = open_line_files(sock)

    session: Optional[ClientSession] = None
    delivery: Optional[threading.Thread] = None

    try:
        # Handshake: first line is the username, no questions asked.
        try:
            username = read_frame(reader)
            if username is None:
                return

            session = ClientSession(
                username=username,
                sock=sock,
                addr=addr,
                reader=reader,
                writer=writer,
                subscription=subscription,
            )
            log(f"User '{username}' connected from {peer}", GREEN)

            write_frame(writer, welcome_line(username))
        except OSError:
            return

        delivery = threading.Thread(
            target=deliver_loop,
            args=(session,),
            daemon=True,
        )
        delivery.start()

        read_loop(session, hub)

    except Exception as e:
        log(f"Exception in client handler {peer}: {e}", RED)

    finally:
        subscription.close()
        hang_up(sock)

        if delivery is not None:
            delivery.join()
            log(f"User '{session.username}' disconnected", YELLOW)

        for f in (reader, writer, sock):
            try:
                f.close()
            except OSError:
                # flushing leftovers into a dead socket
                pass


def open_listener(host: str, port: int) -> socket.socket:
    """Bind + listen. Bind errors are raised to the caller, they're fatal."""
    srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        srv.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        srv.bind((host, port))
        srv.listen()
    except OSError:
        srv.close()
        raise
    return srv


def serve_forever(srv: socket.socket, hub: Hub) -> None:
    """
    Accept loop. Never waits on a handler and never sees handler errors.
    """
    while True:
        try:
            client_sock, addr = srv.accept()
        except OSError as e:
            if srv.fileno() == -1:
                # listener closed under us, nothing left to accept
                return
            log(f"Accept failed: {e}", RED)
            continue

        log(f"New connection from {peer_name(addr)}", CYAN)

        t = threading.Thread(
            target=handle_client,
            args=(client_sock, addr, hub),
            daemon=True,
        )
        t.start()


def run_server(port: int = DEFAULT_PORT, host: str = BIND_HOST) -> None:
    """
    Bootstraps the hub and the TCP listener, then serves until killed.
    """
    hub = Hub()

    with open_listener(host, port) as srv:
        log(f"Server listening on port {port}", GREEN)
        serve_forever(srv, hub)
