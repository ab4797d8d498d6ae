"""
Error Types

Typed failures raised by the cipher, TOTP and two-factor modules.

Messages never include keys, passphrases, TOTP secrets or codes.
"""


class SecureCloudError(Exception):
    """Base class for all SecureCloud errors."""


class CipherError(SecureCloudError):
    """Base class for file cipher failures."""


class EncryptionError(CipherError):
    """Cipher produced no usable output."""


class DecryptionError(CipherError):
    """
    Ciphertext could not be decrypted.

    Raised for a wrong key and for corrupted ciphertext or IV alike;
    the two cases are not distinguished.
    """


class InvalidSecretError(SecureCloudError):
    """TOTP secret decodes to zero usable bytes."""


class TwoFactorError(SecureCloudError):
    """Base class for two-factor enrollment and login failures."""


class TwoFactorNotSetUpError(TwoFactorError):
    """No TOTP secret has been provisioned for the account."""


class TwoFactorRequiredError(TwoFactorError):
    """Account has 2FA enabled but no code was supplied."""


class InvalidTwoFactorCodeError(TwoFactorError):
    """Supplied code did not match any accepted time step."""
