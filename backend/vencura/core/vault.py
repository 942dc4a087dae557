"""
Key vault: encryption at rest for custodial private keys.

    - Cipher: AES-256-GCM, fresh 96-bit nonce per encryption
    - Key derivation: scrypt (N=2**14, r=8, p=1) over the operator secret and a
      fixed application salt, computed once per vault
    - Stored blob: base64(nonce || tag || ciphertext)

Decryption failures of any sort (bad encoding, wrong length, tag mismatch) raise
IntegrityError; a tampered blob never yields a plausible-looking key.
"""
import base64
import binascii
import os
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from vencura.errors import ConfigurationError, IntegrityError


KEY_SALT = b"vencura-private-key"
KEY_LENGTH = 32
IV_LENGTH = 12   # recommended for AES-GCM
TAG_LENGTH = 16
MIN_SECRET_LENGTH = 32
PLACEHOLDER_SECRETS = {
    "development-secret",
    "change-me",
    "changeme",
    "replace-with-a-32-plus-character-random-secret",
}

SCRYPT_N = 2 ** 14
SCRYPT_R = 8
SCRYPT_P = 1


def validate_secret(raw) -> str:
    secret = raw.strip() if isinstance(raw, str) else ""
    if not secret or len(secret) < MIN_SECRET_LENGTH or secret in PLACEHOLDER_SECRETS:
        raise ConfigurationError(
            "KEY_ENCRYPTION_SECRET must be set to a high-entropy value "
            f"(minimum {MIN_SECRET_LENGTH} characters) before starting the service."
        )
    return secret


def derive_key(secret: str, salt: bytes = KEY_SALT) -> bytes:
    kdf = Scrypt(salt=salt, length=KEY_LENGTH, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
    return kdf.derive(secret.encode("utf-8"))


class KeyVault:
    """Encrypts and decrypts wallet private keys with a process-lifetime derived key."""

    def __init__(self, secret: str):
        self._aead = AESGCM(derive_key(validate_secret(secret)))

    def encrypt(self, plaintext_key: str) -> str:
        iv = os.urandom(IV_LENGTH)
        sealed = self._aead.encrypt(iv, plaintext_key.encode("utf-8"), None)
        # AESGCM appends the tag; the stored layout puts it before the ciphertext
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return base64.b64encode(iv + tag + ciphertext).decode("ascii")

    def decrypt(self, blob: str) -> str:
        try:
            raw = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError, TypeError) as exc:
            raise IntegrityError() from exc
        # Non-canonical padding bits would otherwise decode to the same bytes
        if base64.b64encode(raw).decode("ascii") != blob:
            raise IntegrityError()
        if len(raw) <= IV_LENGTH + TAG_LENGTH:
            raise IntegrityError()

        iv = raw[:IV_LENGTH]
        tag = raw[IV_LENGTH:IV_LENGTH + TAG_LENGTH]
        ciphertext = raw[IV_LENGTH + TAG_LENGTH:]
        try:
            plaintext = self._aead.decrypt(iv, ciphertext + tag, None)
        except InvalidTag as exc:
            raise IntegrityError() from exc
        return plaintext.decode("utf-8")
