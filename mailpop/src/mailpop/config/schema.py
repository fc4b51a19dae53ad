"""Pydantic models describing the mailpop configuration document."""
from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..pop3.auth import AuthMethod


class ValidationError(ValueError):
    """Raised when configuration data does not satisfy the schema."""


class SslOptions(BaseModel):
    """TLS parameters handed to the socket layer."""

    model_config = ConfigDict(extra="forbid")

    verify_hostname: bool = False
    verify_mode: Literal["none", "optional", "required"] = "none"
    ca_file: Optional[str] = None

    @model_validator(mode="after")
    def _hostname_needs_verification(self) -> "SslOptions":
        if self.verify_hostname and self.verify_mode == "none":
            raise ValidationError(
                "verify_hostname requires verify_mode 'optional' or 'required'"
            )
        return self


class Pop3Settings(BaseModel):
    """Server address, credentials and login method of one POP3 account."""

    model_config = ConfigDict(extra="forbid")

    host: str = Field(min_length=1)
    port: Optional[int] = Field(default=None, gt=0, lt=65536)
    username: Optional[str] = None
    password: Optional[str] = None
    authenticate: AuthMethod = AuthMethod.AUTO
    use_ssl: bool = False
    ssl_options: SslOptions = Field(default_factory=SslOptions)
    timeout: Optional[float] = Field(default=60.0, gt=0)

    @field_validator("authenticate", mode="before")
    @classmethod
    def _parse_method(cls, value: object) -> AuthMethod:
        try:
            return AuthMethod.parse(value)  # type: ignore[arg-type]
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc


class LoggingSettings(BaseModel):
    """Structured logging defaults."""

    model_config = ConfigDict(extra="forbid")

    component: str = "mailpop"
    level: Literal["debug", "info", "warn", "error"] = "info"

    @field_validator("level", mode="before")
    @classmethod
    def _lower(cls, value: object) -> object:
        return value.lower() if isinstance(value, str) else value


class RuntimeConfig(BaseModel):
    """Root configuration loaded from ``config.yaml``."""

    model_config = ConfigDict(extra="forbid")

    version: int = 1
    pop3: Pop3Settings
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
