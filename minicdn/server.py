"""Process entry point: bind the listener and run uvicorn."""

import logging
import socket
import sys
from typing import Optional

import uvicorn

from minicdn.config import Settings, settings as default_settings
from minicdn.exceptions import BindError
from minicdn.logs import configure_logging
from minicdn.main import create_app

logger = logging.getLogger(__name__)

BACKLOG = 2048


def bind_socket(host: str, port: int) -> socket.socket:
    """
    Bind and listen on ``host:port``.

    Raises:
        BindError: if the address is invalid or already in use. The socket
            is closed before the error propagates.
    """
    try:
        family, type_, proto, _, address = socket.getaddrinfo(
            host, port, type=socket.SOCK_STREAM, flags=socket.AI_PASSIVE
        )[0]
    except (OSError, OverflowError, UnicodeError) as exc:
        raise BindError(host, port, str(exc)) from exc

    sock = socket.socket(family, type_, proto)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind(address)
        sock.listen(BACKLOG)
    except OSError as exc:
        sock.close()
        raise BindError(host, port, exc.strerror or str(exc)) from exc
    return sock


def run(config: Settings) -> None:
    """Serve until interrupted. Exits the process with status 1 if binding fails."""
    configure_logging(config.LOG_FILTER)

    try:
        sock = bind_socket(config.HOST, config.PORT)
    except BindError as exc:
        logger.error(str(exc))
        sys.exit(1)

    logger.info(f"MiniCDN running at {config.base_url}")

    uvicorn_config = uvicorn.Config(
        create_app(config),
        log_config=None,
        access_log=False,
    )
    server = uvicorn.Server(uvicorn_config)
    try:
        server.run(sockets=[sock])
    finally:
        sock.close()


def main(config: Optional[Settings] = None) -> None:
    run(config or default_settings)


if __name__ == "__main__":
    main()
