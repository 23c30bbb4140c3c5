import logging
from pathlib import Path
from typing import Annotated, Optional
from urllib.parse import urlparse, urlunparse

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode

from .verifier import DEFAULT_MAX_SIGNED_REQUEST_LENGTH


class Settings(BaseSettings):
    # connected app (Consumer Key / Consumer Secret / Callback URL)
    CLIENT_ID: str = ""
    CLIENT_SECRET: Optional[str] = None
    REDIRECT_URL: str = "http://127.0.0.1:8000/canvas/callback"

    # used when the host does not send loginUrl
    DEFAULT_LOGIN_URL: str = "https://login.salesforce.com"

    # hosts allowed to supply loginUrl (exact host or any subdomain)
    LOGIN_HOST_SUFFIXES: Annotated[list[str], NoDecode] = ["salesforce.com", "force.com"]

    # host JavaScript SDK served from the login domain
    CANVAS_SDK_VERSION: str = "62.0"

    # non-embedded entry point (pass-through redirect target)
    HOME_PATH: str = "/"

    # reject larger signed requests before decoding anything
    MAX_SIGNED_REQUEST_LENGTH: int = DEFAULT_MAX_SIGNED_REQUEST_LENGTH

    AUDIT_ENABLED: bool = True
    AUDIT_DIR: Path = Path("audit")

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

    @field_validator("CLIENT_SECRET")
    @classmethod
    def normalize_secret(cls, v: Optional[str]) -> Optional[str]:
        # blank secret == no secret; the verifier refuses to start without one
        if v is None:
            return None
        return v.strip() or None

    @field_validator("REDIRECT_URL", "DEFAULT_LOGIN_URL")
    @classmethod
    def normalize_absolute_url(cls, v: str) -> str:
        """
        Must be an absolute http(s) URL.

        Normalization:
          - strip whitespace
          - lowercase hostname
          - keep port, path and query as given
        """
        v = (v or "").strip()
        p = urlparse(v)

        if p.scheme not in ("http", "https"):
            raise ValueError("URL must start with http:// or https://")

        if not p.hostname:
            raise ValueError("URL must include a hostname")

        netloc = p.hostname.lower()
        if p.port:
            netloc = f"{netloc}:{p.port}"

        return urlunparse((p.scheme, netloc, p.path, "", p.query, ""))

    @field_validator("LOGIN_HOST_SUFFIXES", mode="before")
    @classmethod
    def normalize_login_hosts(cls, v):
        # accept LOGIN_HOST_SUFFIXES="salesforce.com,force.com" as well as a list
        if isinstance(v, str):
            v = v.split(",")
        out = [str(s).strip().lstrip(".").lower() for s in v or []]
        out = [s for s in out if s]
        if not out:
            raise ValueError("LOGIN_HOST_SUFFIXES cannot be empty")
        if any("/" in s or ":" in s for s in out):
            raise ValueError("LOGIN_HOST_SUFFIXES must be bare domains")
        return out

    @field_validator("HOME_PATH")
    @classmethod
    def normalize_home_path(cls, v: str) -> str:
        v = (v or "").strip()
        if not v.startswith("/"):
            raise ValueError("HOME_PATH must be a local path starting with '/'")
        return v

    @field_validator("MAX_SIGNED_REQUEST_LENGTH")
    @classmethod
    def positive_length(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("MAX_SIGNED_REQUEST_LENGTH must be positive")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        v = (v or "").strip().upper() or "INFO"
        if not isinstance(logging.getLevelName(v), int):
            raise ValueError(f"unknown LOG_LEVEL: {v}")
        return v


settings = Settings()
