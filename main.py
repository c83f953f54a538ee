from __future__ import annotations

import uvicorn
from dotenv import load_dotenv

from tradejournal.utils.config import get_settings
from tradejournal.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def _check_jwt_secret() -> bool:
    """Pre-startup check: refuse to boot without a usable signing secret."""
    settings = get_settings()
    if len(settings.jwt_secret) < 32:
        logger.error("jwt_secret_invalid", hint="set JWT_SECRET to at least 32 characters")
        return False
    return True


def main() -> None:
    load_dotenv()
    setup_logging()
    if not _check_jwt_secret():
        raise SystemExit(1)

    settings = get_settings()
    uvicorn.run(
        "tradejournal.api.webapp:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
