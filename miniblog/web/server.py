import asyncio
import logging
import signal
import sys
from typing import Optional

from hypercorn.asyncio import serve
from hypercorn.config import Config
from starlette.types import ASGIApp

from miniblog.config import MergedSettings

log = logging.getLogger("asgi_server")


def build_config(settings: MergedSettings) -> Config:
    """
    Hypercorn configuration for the blog.

    :param settings: Source of the bind address and shutdown timeout.
    :return Config: The server config; the `server` response header is disabled.
    """
    config = Config()
    config.bind = [f"{settings.WEB_SERVER_HOST}:{settings.WEB_SERVER_PORT}"]
    config.include_server_header = False
    config.graceful_timeout = settings.GRACEFUL_SHUTDOWN_TIMEOUT
    # Directs Hypercorn's own logs to stdout.
    config.accesslog = "-"
    config.errorlog = "-"
    config.loglevel = "info"
    return config


async def _serve_until_signalled(app: ASGIApp, config: Config) -> None:
    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, shutdown_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers; Ctrl+C still raises KeyboardInterrupt.
            pass
    await serve(app, config, shutdown_trigger=shutdown_event.wait)


def run(app: ASGIApp, settings: MergedSettings, config: Optional[Config] = None) -> None:
    """Serves `app` until SIGINT/SIGTERM. A failure to bind is fatal."""
    config = config or build_config(settings)
    log.info(f"Starting server on {', '.join(config.bind)}")
    try:
        asyncio.run(_serve_until_signalled(app, config))
    except OSError as e:
        log.critical(f"Could not start the server on {', '.join(config.bind)}: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        pass
    log.info("Server stopped.")
