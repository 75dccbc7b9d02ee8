import logging
import sys

import uvicorn
from dotenv import load_dotenv

from taskflow.core.config import get_settings
from taskflow.core.exceptions import StartupError
from taskflow.core.logging import setup_logging
from taskflow.main import create_app

logger = logging.getLogger("taskflow")


def main() -> None:
    load_dotenv()
    try:
        settings = get_settings()
    except StartupError as e:
        setup_logging()
        logger.critical(e.message)
        sys.exit(1)

    setup_logging(settings.log_level)
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
