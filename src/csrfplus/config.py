"""CSRF Plus configuration.

``CsrfConfig`` is the immutable option set the engine runs with. It is built
from defaults plus caller overrides and validated once; contradictory
combinations raise ``ConfigurationError`` immediately instead of failing on
the first request.

``CsrfSettings`` reads deployment knobs from ``CSRF_PLUS_*`` environment
variables (or a ``.env`` file) and turns them into a ``CsrfConfig``.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from csrfplus.errors import ConfigurationError

__all__ = ["CookieOptions", "CsrfConfig", "CsrfSettings", "build_config"]

PRODUCTION_ENVIRONMENTS = frozenset({"production", "prod"})


class CookieOptions(BaseModel):
    """Attributes applied to the token and session-id cookies."""

    model_config = ConfigDict(frozen=True)

    secure: bool = True
    httponly: bool = False
    samesite: Literal["lax", "strict", "none"] = "lax"
    max_age: int | None = 3600  # seconds
    path: str = "/"
    domain: str | None = None


class CsrfConfig(BaseModel):
    """Validated, immutable engine configuration."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    cookie_name: str = "CSRF_PLUS_TOKEN"
    cookie_sid_name: str = "CSRF_PLUS_SID"
    header_name: str = "x-csrf-plus"
    session_header_name: str = "x-session-id"
    field_name: str = "_csrf"
    store: Any = None
    ttl: int = Field(default=60 * 60, ge=0)  # seconds, 0 = no expiry
    secret_len: int = Field(default=32, gt=0, le=1024)
    mask: bool = True
    cookie_options: CookieOptions = Field(default_factory=CookieOptions)
    origin_check: bool = True
    allowed_methods: frozenset[str] = frozenset({"GET", "HEAD", "OPTIONS"})
    stateless: bool = False
    stateless_key: str | bytes | None = None
    stateless_ttl: int = 60 * 60 * 1000  # milliseconds
    environment: str = "development"

    @field_validator("allowed_methods", mode="before")
    @classmethod
    def _normalize_methods(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = [value]
        return frozenset(m.upper() for m in value)

    @field_validator("header_name", "session_header_name")
    @classmethod
    def _lower_header(cls, value: str) -> str:
        return value.lower()

    @model_validator(mode="after")
    def _check_mode(self) -> CsrfConfig:
        # ConfigurationError is not a ValueError, so pydantic lets it through unwrapped
        if self.stateless:
            if not self.stateless_key:
                raise ConfigurationError("stateless_key required when stateless=True")
        elif self.store is None:
            raise ConfigurationError("store required when stateless=False")
        elif not all(callable(getattr(self.store, m, None)) for m in ("get", "set", "delete")):
            raise ConfigurationError("store must provide async get(), set() and delete()")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in PRODUCTION_ENVIRONMENTS


def build_config(**options: Any) -> CsrfConfig:
    """Build a ``CsrfConfig``, reporting every failure as ``ConfigurationError``."""
    try:
        return CsrfConfig(**options)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc


class CsrfSettings(BaseSettings):
    """Deployment settings loaded from the environment.

    All settings can be overridden via ``CSRF_PLUS_*`` environment variables
    or a ``.env`` file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_prefix="CSRF_PLUS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = "development"
    stateless: bool = False
    stateless_key: SecretStr | None = None
    stateless_ttl: int = 60 * 60 * 1000
    ttl: int = 60 * 60
    secret_len: int = 32
    mask: bool = True
    origin_check: bool = True
    cookie_secure: bool = True
    redis_url: str | None = None

    def to_config(self, **overrides: Any) -> CsrfConfig:
        """Merge these settings with *overrides* into a validated ``CsrfConfig``.

        When stateful and no ``store`` override is given, a ``RedisStore`` is
        created from ``redis_url`` if set.
        """
        options: dict[str, Any] = {
            "environment": self.environment,
            "stateless": self.stateless,
            "stateless_key": self.stateless_key.get_secret_value() if self.stateless_key else None,
            "stateless_ttl": self.stateless_ttl,
            "ttl": self.ttl,
            "secret_len": self.secret_len,
            "mask": self.mask,
            "origin_check": self.origin_check,
            "cookie_options": CookieOptions(secure=self.cookie_secure),
        }
        if not self.stateless and "store" not in overrides and self.redis_url:
            from csrfplus.storage.redis import RedisStore

            options["store"] = RedisStore.from_url(self.redis_url)
        options.update(overrides)
        return build_config(**options)
