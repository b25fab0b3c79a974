from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, Field, SecretStr, field_validator


# Environment variable names for convenience configuration
ENV_SECRET_KEY = "FIELDCRYPT_SECRET_KEY"
ENV_CIPHER = "FIELDCRYPT_CIPHER"
ENV_PREFIX = "FIELDCRYPT_PREFIX"

# Backward-compatible fallback (constant name used by the WordPress plugin)
FALLBACK_ENV_SECRET_KEY = "ACF_EFO_SECRET_KEY"

DEFAULT_CIPHER = "AES-256-CBC"
DEFAULT_PREFIX = "_acf_efo_"


class ConfigurationError(RuntimeError):
    """Raised when the codec cannot be built from the supplied configuration."""


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.environ.get(name)
    return v if v not in (None, "") else default


class CodecSettings(BaseModel):
    """
    Configuration for the field codec.

    Fields
    - secret_key: key material origin. Wrapped in SecretStr so it never shows
      up in reprs or model dumps.
    - cipher: OpenSSL-style cipher name, e.g. "AES-256-CBC".
    - prefix: literal tag marking a stored value as ciphertext.
    """

    secret_key: SecretStr
    cipher: str = Field(default=DEFAULT_CIPHER, description="Cipher identifier")
    prefix: str = Field(default=DEFAULT_PREFIX, description="Blob tag prefix")

    @field_validator("cipher")
    @classmethod
    def _normalize_cipher(cls, v: str) -> str:
        return v.strip().upper()

    @classmethod
    def from_env(cls) -> "CodecSettings":
        secret = _getenv(ENV_SECRET_KEY) or _getenv(FALLBACK_ENV_SECRET_KEY)
        if not secret:
            raise ConfigurationError(
                f"Missing required environment variable for field encryption: {ENV_SECRET_KEY}"
            )
        return cls(
            secret_key=SecretStr(secret),
            cipher=_getenv(ENV_CIPHER, DEFAULT_CIPHER),
            prefix=_getenv(ENV_PREFIX, DEFAULT_PREFIX),
        )
