"""
File Records

Metadata kept next to an encrypted blob, plus the upload-time key policy.

The record carries the IV out-of-band; the passphrase is never part of it.
"""

import logging
import mimetypes
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .file_cipher import CipherEnvelope, FileCipher


logger = logging.getLogger(__name__)


MIN_KEY_LENGTH = 8
DEFAULT_CONTENT_TYPE = 'application/octet-stream'


def validate_encryption_key(key: str) -> Dict[str, Any]:
    """
    Check a user-chosen encryption key against the upload policy.

    Args:
        key: Passphrase the user typed for a file

    Returns:
        Dict with 'valid' (bool) and 'errors' (list of messages)
    """
    errors: List[str] = []

    if not key or not key.strip():
        errors.append("Encryption key is required")
    elif len(key) < MIN_KEY_LENGTH:
        errors.append(f"Encryption key must be at least {MIN_KEY_LENGTH} characters long")

    return {
        'valid': not errors,
        'errors': errors,
    }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class FileRecord:
    """Metadata record for one encrypted file."""
    name: str
    size: int
    iv: str
    content_type: str = DEFAULT_CONTENT_TYPE
    storage_path: Optional[str] = None
    uploaded_at: datetime = field(default_factory=_utcnow)

    def envelope(self, ciphertext: bytes) -> CipherEnvelope:
        """Pair a fetched blob with this record's IV."""
        return CipherEnvelope(ciphertext=ciphertext, iv=self.iv)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for a metadata store."""
        return {
            'name': self.name,
            'size': self.size,
            'iv': self.iv,
            'content_type': self.content_type,
            'storage_path': self.storage_path,
            'uploaded_at': self.uploaded_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FileRecord':
        """Deserialize from a metadata store."""
        uploaded_at = data.get('uploaded_at')
        return cls(
            name=data['name'],
            size=int(data['size']),
            iv=data['iv'],
            content_type=data.get('content_type') or DEFAULT_CONTENT_TYPE,
            storage_path=data.get('storage_path'),
            uploaded_at=datetime.fromisoformat(uploaded_at) if uploaded_at else _utcnow(),
        )


def encrypt_file(input_path: str, output_path: str,
                 key: str, **kwargs) -> FileRecord:
    """
    Encrypt a file on disk and describe the result.

    The whole file is read into memory.

    Args:
        input_path: Plaintext file
        output_path: Where to write the raw ciphertext
        key: Encryption passphrase
        **kwargs: Passed to FileCipher

    Returns:
        FileRecord carrying the IV

    Raises:
        ValueError: If the key fails the key policy
    """
    validation = validate_encryption_key(key)
    if not validation['valid']:
        raise ValueError(f"Invalid encryption key: {', '.join(validation['errors'])}")

    with open(input_path, 'rb') as f:
        plaintext = f.read()

    envelope = FileCipher(**kwargs).encrypt(plaintext, key)

    with open(output_path, 'wb') as f:
        f.write(envelope.ciphertext)

    name = os.path.basename(input_path)
    content_type, _ = mimetypes.guess_type(name)
    logger.info("Encrypted %s (%d bytes)", name, len(plaintext))

    return FileRecord(
        name=name,
        size=len(plaintext),
        iv=envelope.iv,
        content_type=content_type or DEFAULT_CONTENT_TYPE,
        storage_path=output_path,
    )


def decrypt_file(input_path: str, output_path: str,
                 key: str, iv: str, **kwargs) -> dict:
    """
    Decrypt a ciphertext file written by encrypt_file.

    Args:
        input_path: Raw ciphertext file
        output_path: Where to write the plaintext
        key: Encryption passphrase
        iv: Hex IV from the file's record
        **kwargs: Passed to FileCipher

    Returns:
        Dict with decryption metadata

    Raises:
        DecryptionError: Wrong key, bad IV or corrupted ciphertext
    """
    with open(input_path, 'rb') as f:
        ciphertext = f.read()

    plaintext = FileCipher(**kwargs).decrypt(CipherEnvelope(ciphertext, iv), key)

    with open(output_path, 'wb') as f:
        f.write(plaintext)

    logger.info("Decrypted %s (%d bytes)", os.path.basename(input_path), len(plaintext))

    return {
        'encrypted_size': len(ciphertext),
        'decrypted_size': len(plaintext),
    }
