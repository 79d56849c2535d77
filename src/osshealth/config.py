"""Runtime settings read from the environment (and ``.env`` via the CLI)."""

import os

from pydantic import BaseModel, Field


class Settings(BaseModel):
    """Service configuration.

    Every field maps to an upper-case environment variable of the same name.
    """

    github_token: str | None = None
    host: str = "127.0.0.1"
    port: int = 5000
    cache_ttl_seconds: float = Field(default=600, gt=0)
    github_timeout: float = Field(default=10.0, gt=0)
    registry_timeout: float = Field(default=5.0, gt=0)
    max_contributor_pages: int = Field(default=100, ge=1)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "Settings":
        """Build settings from environment variables, ignoring unset/empty ones."""
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(name.upper())
            if raw:
                values[name] = raw
        return cls.model_validate(values)
