# config.py
# Environment-driven settings. A .env file in the working directory is
# honoured; real environment variables win over it.
#
#   SKIPCHAIN_NODES      comma-separated node URLs of the roster
#   SKIPCHAIN_TIMEOUT    per-request timeout in seconds (default 10)
#   SKIPCHAIN_LOG_LEVEL  logging level name (default WARNING)

import logging
import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator
from rich.logging import RichHandler

from skipchain_explorer.errors import ConfigError

load_dotenv()


class ExplorerConfig(BaseModel):
    nodes: list[str] = Field(..., min_length=1, description="Roster node base URLs.")
    timeout: float = Field(default=10.0, gt=0)
    log_level: str = Field(default="WARNING")

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level {value!r}")
        return level


def load_config() -> ExplorerConfig:
    """Read settings from the environment. Raises ConfigError on bad values."""
    nodes = [n.strip() for n in os.getenv("SKIPCHAIN_NODES", "").split(",") if n.strip()]
    try:
        return ExplorerConfig(
            nodes=nodes,
            timeout=os.getenv("SKIPCHAIN_TIMEOUT", "10"),
            log_level=os.getenv("SKIPCHAIN_LOG_LEVEL", "WARNING"),
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid explorer configuration: {exc}") from exc


def configure_logging(level: str = "WARNING") -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
