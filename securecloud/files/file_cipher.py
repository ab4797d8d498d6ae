"""
File Cipher Module

Passphrase-based encryption of whole file buffers before upload.

- AES-256-CBC with PKCS#7 padding
- Random 16-byte IV per encryption, stored as lowercase hex
- Key derived from the passphrase with PBKDF2-HMAC-SHA256
  (or Argon2id), salted with the IV

Envelope:
    ciphertext  raw AES-CBC output, no header
    iv          32 lowercase hex chars, persisted beside the blob

The same passphrase, KDF and KDF parameters must be used on both
sides. A wrong passphrase is reported as DecryptionError; CBC has no
authentication tag, so a wrong key can occasionally unpad cleanly and
yield garbage instead.
"""

import logging
import secrets
from dataclasses import dataclass
from typing import Any, Dict

from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..errors import DecryptionError, EncryptionError


logger = logging.getLogger(__name__)


# Constants
IV_SIZE = 16                # AES block size
BLOCK_SIZE_BITS = 128
KEY_SIZE = 32               # 256-bit keys

# PBKDF2 configuration
PBKDF2_ITERATIONS = 100_000
PBKDF2_ALGORITHM = hashes.SHA256()

# Argon2id configuration
ARGON2_KDF_CONFIG = {
    'time_cost': 3,          # Number of iterations
    'memory_cost': 65536,    # 64 MiB memory
    'parallelism': 4,        # 4 parallel threads
}

KDF_PBKDF2 = 'pbkdf2'
KDF_ARGON2ID = 'argon2id'
SUPPORTED_KDFS = (KDF_PBKDF2, KDF_ARGON2ID)


@dataclass(frozen=True)
class CipherEnvelope:
    """Ciphertext plus the hex IV it was produced with."""
    ciphertext: bytes
    iv: str

    def iv_bytes(self) -> bytes:
        """
        Decode the hex IV.

        Raises:
            DecryptionError: If the IV is not 16 bytes of hex
        """
        try:
            raw = bytes.fromhex(self.iv)
        except (TypeError, ValueError) as exc:
            raise DecryptionError("IV is not valid hex") from exc
        if len(raw) != IV_SIZE:
            raise DecryptionError(f"IV must be {IV_SIZE} bytes, got {len(raw)}")
        if len(self.iv) != IV_SIZE * 2:
            raise DecryptionError(f"IV must be exactly {IV_SIZE * 2} hex characters")
        return raw

    def to_dict(self) -> Dict[str, Any]:
        """Metadata view; the ciphertext itself goes to blob storage."""
        return {'iv': self.iv, 'size': len(self.ciphertext)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any], ciphertext: bytes) -> 'CipherEnvelope':
        """Rebuild an envelope from a metadata record and its fetched blob."""
        return cls(ciphertext=ciphertext, iv=data['iv'])


def derive_key_pbkdf2(password: str, salt: bytes,
                      iterations: int = PBKDF2_ITERATIONS) -> bytes:
    """
    Derive encryption key from password using PBKDF2.

    Args:
        password: User passphrase
        salt: Per-encryption salt (the IV)
        iterations: Number of iterations

    Returns:
        32-byte derived key
    """
    kdf = PBKDF2HMAC(
        algorithm=PBKDF2_ALGORITHM,
        length=KEY_SIZE,
        salt=salt,
        iterations=iterations,
        backend=default_backend()
    )
    return kdf.derive(password.encode('utf-8'))


def derive_key_argon2id(password: str, salt: bytes, **overrides) -> bytes:
    """
    Derive encryption key from password using Argon2id.

    Args:
        password: User passphrase
        salt: Per-encryption salt (the IV)
        **overrides: Override ARGON2_KDF_CONFIG entries

    Returns:
        32-byte derived key
    """
    config = ARGON2_KDF_CONFIG.copy()
    config.update(overrides)
    return hash_secret_raw(
        secret=password.encode('utf-8'),
        salt=salt,
        time_cost=config['time_cost'],
        memory_cost=config['memory_cost'],
        parallelism=config['parallelism'],
        hash_len=KEY_SIZE,
        type=Type.ID,
    )


def generate_iv() -> bytes:
    """Generate a random 16-byte IV."""
    return secrets.token_bytes(IV_SIZE)


class FileCipher:
    """
    AES-256-CBC encryptor for in-memory file buffers.

    Example:
        >>> cipher = FileCipher()
        >>> envelope = cipher.encrypt(b"report", "correct horse")
        >>> cipher.decrypt(envelope, "correct horse")
        b'report'
    """

    def __init__(self, kdf: str = KDF_PBKDF2,
                 iterations: int = PBKDF2_ITERATIONS,
                 **argon2_overrides):
        """
        Args:
            kdf: 'pbkdf2' (default) or 'argon2id'
            iterations: PBKDF2 iterations
            **argon2_overrides: time_cost / memory_cost / parallelism
        """
        if kdf not in SUPPORTED_KDFS:
            raise ValueError(f"Unsupported KDF: {kdf!r}")
        if iterations <= 0:
            raise ValueError("iterations must be > 0")
        unknown = set(argon2_overrides) - set(ARGON2_KDF_CONFIG)
        if unknown:
            raise ValueError(f"Unknown Argon2 parameters: {', '.join(sorted(unknown))}")

        self._kdf = kdf
        self._iterations = iterations
        self._argon2_overrides = argon2_overrides

    @property
    def kdf(self) -> str:
        return self._kdf

    def derive_key(self, key: str, iv: bytes) -> bytes:
        """Derive the AES key for a passphrase and IV."""
        if self._kdf == KDF_ARGON2ID:
            return derive_key_argon2id(key, iv, **self._argon2_overrides)
        return derive_key_pbkdf2(key, iv, self._iterations)

    def encrypt(self, plaintext: bytes, key: str) -> CipherEnvelope:
        """
        Encrypt a buffer under a passphrase.

        Args:
            plaintext: Data to encrypt (may be empty)
            key: Non-empty passphrase

        Returns:
            CipherEnvelope with a fresh random IV

        Raises:
            ValueError: If the key is empty
            EncryptionError: If key derivation or the cipher fails
        """
        if not key:
            raise ValueError("Encryption key must be a non-empty string")

        iv = generate_iv()

        try:
            aes_key = self.derive_key(key, iv)

            padder = padding.PKCS7(BLOCK_SIZE_BITS).padder()
            padded = padder.update(plaintext) + padder.finalize()

            encryptor = Cipher(
                algorithms.AES(aes_key), modes.CBC(iv), backend=default_backend()
            ).encryptor()
            ciphertext = encryptor.update(padded) + encryptor.finalize()
        except (TypeError, ValueError, HashingError) as exc:
            logger.warning("Encryption failed: %s", type(exc).__name__)
            raise EncryptionError("Encryption failed") from exc

        if not ciphertext:
            logger.warning("Cipher produced empty output for %d input bytes", len(plaintext))
            raise EncryptionError("Encryption resulted in empty ciphertext")

        logger.debug("Encrypted %d bytes into %d bytes (kdf=%s)",
                     len(plaintext), len(ciphertext), self._kdf)
        return CipherEnvelope(ciphertext=ciphertext, iv=iv.hex())

    def decrypt(self, envelope: CipherEnvelope, key: str) -> bytes:
        """
        Decrypt an envelope under a passphrase.

        Args:
            envelope: Ciphertext and hex IV
            key: Passphrase used at encryption time

        Returns:
            Original plaintext bytes

        Raises:
            ValueError: If the key is empty
            DecryptionError: Wrong key, bad IV or malformed ciphertext
        """
        if not key:
            raise ValueError("Decryption key must be a non-empty string")

        iv = envelope.iv_bytes()
        ciphertext = envelope.ciphertext
        if not ciphertext or len(ciphertext) % IV_SIZE:
            raise DecryptionError(
                f"Ciphertext length {len(ciphertext)} is not a positive multiple of {IV_SIZE}"
            )

        try:
            aes_key = self.derive_key(key, iv)
            decryptor = Cipher(
                algorithms.AES(aes_key), modes.CBC(iv), backend=default_backend()
            ).decryptor()
            padded = decryptor.update(ciphertext) + decryptor.finalize()
        except (TypeError, ValueError, HashingError) as exc:
            logger.warning("Decryption failed: %s", type(exc).__name__)
            raise DecryptionError("Decryption process failed.") from exc

        try:
            unpadder = padding.PKCS7(BLOCK_SIZE_BITS).unpadder()
            plaintext = unpadder.update(padded) + unpadder.finalize()
        except ValueError as exc:
            logger.warning("Decryption produced invalid padding")
            raise DecryptionError("Decryption failed. Incorrect key?") from exc

        logger.debug("Decrypted %d bytes into %d bytes (kdf=%s)",
                     len(ciphertext), len(plaintext), self._kdf)
        return plaintext

    def __repr__(self) -> str:
        return f"FileCipher(kdf='{self._kdf}')"


def encrypt_bytes(data: bytes, key: str, **kwargs) -> CipherEnvelope:
    """Convenience function for buffer encryption."""
    return FileCipher(**kwargs).encrypt(data, key)


def decrypt_bytes(envelope: CipherEnvelope, key: str, **kwargs) -> bytes:
    """Convenience function for buffer decryption."""
    return FileCipher(**kwargs).decrypt(envelope, key)
