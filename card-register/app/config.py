"""Settings for the card registration draft manager.

Values come from ``CARD_DRAFTS_*`` environment variables or the tool's
``.env`` file, falling back to the defaults the registration wizard ships
with.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    data_dir: Path = BASE_DIR / "data"

    # Snapshot store (localStorage) and blob store (embedded database)
    storage_key: str = "regFormDraft_v1"
    db_name: str = "regDraftDB"
    max_file_size: int = 5 * 1024 * 1024

    # Timing, in milliseconds
    debounce_ms: int = 200
    status_duration_ms: int = 3000
    saved_notice_delay_ms: int = 300

    # Server collaborators
    api_base_url: str = "http://localhost"
    autosave_path: str = "/backend/api/mypage/autosave.php"
    upload_path: str = "/backend/api/business-card/upload.php"
    request_timeout: float = 10.0
    profile_page_paths: list[str] = ["/frontend/edit.php", "/edit.php"]

    audit_enabled: bool = True

    model_config = {
        "env_prefix": "CARD_DRAFTS_",
        "env_file": BASE_DIR / ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def autosave_url(self) -> str:
        return self.api_base_url.rstrip("/") + self.autosave_path

    @property
    def upload_url(self) -> str:
        return self.api_base_url.rstrip("/") + self.upload_path

    @property
    def db_path(self) -> Path:
        return self.data_dir / f"{self.db_name}.db"

    @property
    def local_storage_path(self) -> Path:
        return self.data_dir / "local_storage.json"

    @property
    def audit_dir(self) -> Path:
        return self.data_dir / "audit"


@lru_cache
def get_settings() -> Settings:
    return Settings()
