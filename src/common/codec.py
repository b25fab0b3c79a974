from __future__ import annotations

import base64
import binascii
import hashlib
import os
from typing import Dict, Optional, Union

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from pydantic import SecretStr

from .settings import (
    DEFAULT_CIPHER,
    DEFAULT_PREFIX,
    CodecSettings,
    ConfigurationError,
)


# Cipher name -> key length in bytes. All are AES in CBC mode.
SUPPORTED_CIPHERS: Dict[str, int] = {
    "AES-128-CBC": 16,
    "AES-192-CBC": 24,
    "AES-256-CBC": 32,
}
IV_LENGTH = 16
BLOCK_BITS = 128


class DecodeError(ValueError):
    """Raised when a tagged value cannot be decrypted back to text."""


def derive_key(secret: str, key_length: int) -> bytes:
    """Derive the cipher key from the configured secret.

    The key is the lowercase hex SHA-256 digest of the secret, taken as ASCII
    bytes and cut to the cipher key length. OpenSSL truncates an over-long key
    string the same way, so blobs written by the PHP plugin stay readable.
    """
    digest = hashlib.sha256(secret.encode("utf-8")).hexdigest()
    return digest.encode("ascii")[:key_length]


class FieldCodec:
    """
    Encrypts single field values into self-describing tagged strings.

    Stored format: ``prefix + base64(iv + base64(ciphertext))``. The inner
    base64 layer is OpenSSL's default text output and is kept for
    compatibility with previously stored data.

    - `encode()` uses a fresh random IV per call, so the same plaintext never
      yields the same blob twice.
    - `decode()` passes untagged values through unchanged and raises
      `DecodeError` for tagged values that do not decrypt cleanly.

    Instances are immutable after construction and safe to share across threads.
    """

    def __init__(
        self,
        secret: Union[str, SecretStr, None],
        *,
        cipher: str = DEFAULT_CIPHER,
        prefix: str = DEFAULT_PREFIX,
    ) -> None:
        if isinstance(secret, SecretStr):
            secret = secret.get_secret_value()
        if not secret:
            raise ConfigurationError("secret is required")
        name = (cipher or "").strip().upper()
        if name not in SUPPORTED_CIPHERS:
            raise ConfigurationError(
                f"Unsupported cipher {cipher!r}; expected one of {', '.join(sorted(SUPPORTED_CIPHERS))}"
            )
        if not prefix:
            raise ConfigurationError("prefix must be a non-empty string")
        self._cipher_name = name
        self._prefix = prefix
        self._key = derive_key(secret, SUPPORTED_CIPHERS[name])

    # -------- Construction helpers --------
    @classmethod
    def from_settings(cls, settings: CodecSettings) -> "FieldCodec":
        return cls(settings.secret_key, cipher=settings.cipher, prefix=settings.prefix)

    @classmethod
    def from_env(cls) -> "FieldCodec":
        return cls.from_settings(CodecSettings.from_env())

    @property
    def cipher(self) -> str:
        return self._cipher_name

    @property
    def prefix(self) -> str:
        return self._prefix

    def __repr__(self) -> str:
        return f"FieldCodec(cipher={self._cipher_name!r}, prefix={self._prefix!r})"

    # -------- Core operations --------
    def is_encoded(self, value: object) -> bool:
        """Return True if `value` carries the blob tag."""
        return isinstance(value, str) and value.startswith(self._prefix)

    def encode(self, plaintext: Optional[str]) -> Optional[str]:
        """Encrypt `plaintext` and return the tagged blob (None stays None)."""
        if plaintext is None:
            return None
        iv = os.urandom(IV_LENGTH)
        padder = padding.PKCS7(BLOCK_BITS).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
        encryptor = self._new_cipher(iv).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
        payload = iv + base64.b64encode(ciphertext)
        return self._prefix + base64.b64encode(payload).decode("ascii")

    def decode(self, value: Optional[str]) -> Optional[str]:
        """Decrypt a tagged blob; return anything else unchanged.

        Raises:
        - DecodeError if the value carries the tag but is malformed, truncated,
          or does not decrypt under this codec's key.
        """
        if not self.is_encoded(value):
            return value
        body = value[len(self._prefix):]

        try:
            payload = base64.b64decode(body.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError) as ex:
            raise DecodeError("Encrypted value is not valid base64") from ex
        if len(payload) <= IV_LENGTH:
            raise DecodeError("Encrypted value is too short to hold an IV and ciphertext")

        iv, encoded_ct = payload[:IV_LENGTH], payload[IV_LENGTH:]
        try:
            ciphertext = base64.b64decode(encoded_ct, validate=True)
        except binascii.Error as ex:
            raise DecodeError("Encrypted value has a malformed ciphertext section") from ex
        if not ciphertext or len(ciphertext) % (BLOCK_BITS // 8):
            raise DecodeError("Ciphertext length is not a whole number of cipher blocks")

        decryptor = self._new_cipher(iv).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(BLOCK_BITS).unpadder()
        try:
            raw = unpadder.update(padded) + unpadder.finalize()
        except ValueError as ex:
            raise DecodeError("Failed to decrypt value: bad padding (wrong key or corrupt data)") from ex
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as ex:
            raise DecodeError("Decrypted value is not valid UTF-8 text") from ex

    # -------- Internal --------
    def _new_cipher(self, iv: bytes) -> Cipher:
        return Cipher(algorithms.AES(self._key), modes.CBC(iv))
