"""
SecureCloud - client-side cryptography for encrypted cloud file storage.

- files: AES-256-CBC file cipher and file metadata records
- auth: Base32, TOTP (RFC 6238) and two-factor enrollment
"""

__version__ = "1.0.0"
