"""Run the TopPrix-DZ API (and the Telegram bot when BOT_TOKEN is set)."""
import logging

import uvicorn

from .config import Settings
from .main import configure_logging, create_app

logger = logging.getLogger("topprix")


def main() -> int:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    try:
        # uvicorn handles SIGINT/SIGTERM and runs the lifespan shutdown
        uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)
    except SystemExit as e:
        # uvicorn exits with 3 when startup fails
        if e.code not in (None, 0):
            logger.error("❌ Server exited with code %s", e.code)
            return 1
    except Exception:
        logger.exception("❌ Uncaught exception")
        return 1
    logger.info("🛑 Server stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
