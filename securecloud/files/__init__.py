# File Encryption Module
"""
File encryption implementations including:
- AES-256-CBC with PKCS#7 padding
- PBKDF2-HMAC-SHA256 (or Argon2id) key derivation salted with the IV
- Random 16-byte IV per file, stored as lowercase hex
- File metadata records and upload key policy
"""

from .file_cipher import (
    FileCipher,
    CipherEnvelope,
    encrypt_bytes,
    decrypt_bytes,
    derive_key_pbkdf2,
    derive_key_argon2id,
    generate_iv,
    PBKDF2_ITERATIONS,
    ARGON2_KDF_CONFIG,
    IV_SIZE,
)

from .records import (
    FileRecord,
    encrypt_file,
    decrypt_file,
    validate_encryption_key,
    MIN_KEY_LENGTH,
)

__all__ = [
    # Cipher
    'FileCipher',
    'CipherEnvelope',
    'encrypt_bytes',
    'decrypt_bytes',
    'derive_key_pbkdf2',
    'derive_key_argon2id',
    'generate_iv',
    'PBKDF2_ITERATIONS',
    'ARGON2_KDF_CONFIG',
    'IV_SIZE',
    # Records
    'FileRecord',
    'encrypt_file',
    'decrypt_file',
    'validate_encryption_key',
    'MIN_KEY_LENGTH',
]
