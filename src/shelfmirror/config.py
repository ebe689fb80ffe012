# ABOUTME: Runtime configuration for shelfmirror.
# ABOUTME: Environment-driven settings plus user overrides persisted in user-settings.json.

import json
import logging
from pathlib import Path
from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict

from shelfmirror.catalog.http import DEFAULT_ENDPOINT
from shelfmirror.db.connection import DEFAULT_DATA_DIR

logger = logging.getLogger(__name__)

USER_SETTINGS_FILENAME = "user-settings.json"
USER_SETTING_KEYS = ("calibre_db_path", "hardcover_list_id")


class Settings(BaseSettings):
    """Settings read from ``SHELFMIRROR_*`` environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_prefix="SHELFMIRROR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    data_dir: Path = DEFAULT_DATA_DIR
    calibre_db_path: Path | None = None

    hardcover_endpoint: str = DEFAULT_ENDPOINT
    hardcover_api_key: str | None = None
    hardcover_list_id: int | None = None
    request_timeout: float = 20.0
    request_delay_seconds: float = 0.5

    # Minutes between scheduled runs; zero or less disables the job.
    library_sync_minutes: int = 30
    bookshelf_sync_minutes: int = 30
    want_sync_minutes: int = 30

    lists_per_book: int = 12
    items_per_list: int = 20
    pending_batch_size: int = 25
    min_rating: float | None = None

    @property
    def database_path(self) -> Path:
        return self.data_dir / "shelfmirror.db"

    @property
    def covers_dir(self) -> Path:
        return self.data_dir / "covers"

    @property
    def user_settings_path(self) -> Path:
        return self.data_dir / USER_SETTINGS_FILENAME

    @property
    def hardcover_configured(self) -> bool:
        return bool(self.hardcover_api_key and self.hardcover_api_key.strip())


class UserSettingsStore:
    """User-editable overrides kept as a small JSON document."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> dict[str, Any]:
        if not self.path.is_file():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            return {}
        return {key: data[key] for key in USER_SETTING_KEYS if data.get(key) not in (None, "")}

    def set(self, key: str, value: Any) -> None:
        if key not in USER_SETTING_KEYS:
            raise KeyError(key)
        data = self.load()
        if value in (None, ""):
            data.pop(key, None)
        else:
            data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def load_settings(data_dir: Path | None = None) -> Settings:
    """Build settings from the environment, then apply stored user overrides."""
    settings = Settings(data_dir=data_dir) if data_dir else Settings()
    overrides = UserSettingsStore(settings.user_settings_path).load()
    update: dict[str, Any] = {}
    if "calibre_db_path" in overrides:
        update["calibre_db_path"] = Path(str(overrides["calibre_db_path"])).expanduser()
    if "hardcover_list_id" in overrides:
        try:
            update["hardcover_list_id"] = int(overrides["hardcover_list_id"])
        except (TypeError, ValueError):
            logger.warning("Ignoring non-numeric hardcover_list_id override")
    return settings.model_copy(update=update) if update else settings
