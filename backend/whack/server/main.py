"""Process entry point: `whack-server`."""

import structlog
import uvicorn

from shared.logging import setup_logging
from whack.server.app import create_app
from whack.server.settings import GameServerSettings

logger = structlog.get_logger()


def main() -> None:  # pragma: no cover
    settings = GameServerSettings()
    log_file = setup_logging(log_dir=settings.log_dir)
    if log_file is not None:
        logger.info("logging to file", path=str(log_file))
    app = create_app(settings=settings)
    logger.info("starting whack server", host=settings.host, port=settings.port)
    # uvicorn would otherwise replace the handlers set up above
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":  # pragma: no cover
    main()
