# clinicdocs/core/logging.py
import logging

from clinicdocs.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(level=(level or settings.LOG_LEVEL).upper(), format=LOG_FORMAT)
    # el engine de SQLAlchemy es muy verboso en INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def mask_code(code: str | None) -> str:
    """Return a verification code safe to put in logs (last two chars only)."""
    if not code:
        return "-"
    return "*" * max(len(code) - 2, 0) + code[-2:]
