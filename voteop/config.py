"""Runtime settings, read from the environment (and an optional .env file)."""
import os
from dataclasses import dataclass

from dotenv import load_dotenv

DEFAULT_PORT = 3000
DEFAULT_HOST = "0.0.0.0"
DEFAULT_DB_PATH = "vote_operator.db"
DEFAULT_STORE_TIMEOUT = 30.0
DEFAULT_MAX_CONTENT_LENGTH = 50 * 1024 * 1024


def _parse_bool(value, default: bool) -> bool:
    if value is None or value == "":
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _parse_number(value, default, cast=int):
    try:
        return cast(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class Settings:
    operator_private_key: str | None
    db_path: str = DEFAULT_DB_PATH
    store_timeout: float = DEFAULT_STORE_TIMEOUT
    require_signature: bool = False
    max_content_length: int = DEFAULT_MAX_CONTENT_LENGTH
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        if environ is None:
            load_dotenv()
            environ = os.environ
        return cls(
            operator_private_key=environ.get("OPERATOR_PRIVATE_KEY"),
            db_path=environ.get("DB_PATH", DEFAULT_DB_PATH),
            store_timeout=_parse_number(environ.get("STORE_TIMEOUT"), DEFAULT_STORE_TIMEOUT, float),
            require_signature=_parse_bool(environ.get("REQUIRE_SIGNATURE"), False),
            max_content_length=_parse_number(environ.get("MAX_CONTENT_LENGTH"), DEFAULT_MAX_CONTENT_LENGTH),
            host=environ.get("HOST", DEFAULT_HOST),
            port=_parse_number(environ.get("PORT"), DEFAULT_PORT),
            log_level=environ.get("LOG_LEVEL", "INFO").upper(),
        )

    def __repr__(self) -> str:
        key = "<set>" if self.operator_private_key else None
        return (
            f"Settings(operator_private_key={key!r}, db_path={self.db_path!r}, "
            f"require_signature={self.require_signature}, host={self.host!r}, port={self.port})"
        )
