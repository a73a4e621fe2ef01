import argparse
from typing import List, Optional

from console import setup_colour, error
from server import run_server, DEFAULT_PORT
from client import run_client


def port_number(value: str) -> int:
    """argparse type for a TCP port (0-65535)."""
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"'{value}' is not a port number")
    if not 0 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"port {port} is out of range 0-65535")
    return port


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chat-app",
        description="Chat application with client and server",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    srv = sub.add_parser("server", help="run the chat server")
    srv.add_argument("-p", "--port", type=port_number, default=DEFAULT_PORT,
                     help=f"port to listen on (default {DEFAULT_PORT})")

    cli = sub.add_parser("client", help="connect to a chat server")
    cli.add_argument("-a", "--address", required=True,
                     help="server address as host:port")
    cli.add_argument("-u", "--username", required=True,
                     help="name shown to other users")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Entry point. Returns the process exit code:
    0 on a clean run, 1 when the server can't bind or the client can't
    connect. Bad arguments make argparse exit with 2.
    """
    args = build_parser().parse_args(argv)
    setup_colour()

    try:
        if args.command == "server":
            run_server(args.port)
        else:
            return run_client(args.address, args.username)
    except KeyboardInterrupt:
        return 0
    except (OSError, ValueError) as e:
        error(f"Error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
