"""Storage configuration models."""
from pydantic import BaseModel, ConfigDict, field_validator


class StorageConfig(BaseModel):
    """WebDAV storage configuration (immutable for the process lifetime)."""
    model_config = ConfigDict(frozen=True)

    base_url: str
    username: str = ""
    password: str = ""

    # Advanced settings
    timeout: float = 30.0
    max_retry_attempts: int = 3

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")
