# Authentication Module
"""
Second-factor authentication implementations including:
- Base32 codec (RFC 4648) - base32.py
- TOTP/HOTP (2FA, RFC 6238 / RFC 4226) - totp.py
- Enrollment state machine and QR rendering - two_factor.py

Security features:
- Secrets drawn from a CSPRNG (160 bits)
- Constant-time code comparison
- Clock injection for deterministic verification
"""

from .totp import (
    TOTPEngine,
    hotp,
    generate_secret,
    generate_code,
    verify_code,
    build_provisioning_uri,
    secret_to_bytes,
    time_counter,
    TOTP_DIGITS,
    TOTP_TIME_STEP,
    TOTP_DRIFT_TOLERANCE,
    DEFAULT_ISSUER,
)

from .two_factor import (
    TwoFactorManager,
    TwoFactorAccount,
    TwoFactorSetup,
    TwoFactorState,
    render_qr,
)

__all__ = [
    # TOTP
    'TOTPEngine',
    'hotp',
    'generate_secret',
    'generate_code',
    'verify_code',
    'build_provisioning_uri',
    'secret_to_bytes',
    'time_counter',
    'TOTP_DIGITS',
    'TOTP_TIME_STEP',
    'TOTP_DRIFT_TOLERANCE',
    'DEFAULT_ISSUER',
    # Two-factor
    'TwoFactorManager',
    'TwoFactorAccount',
    'TwoFactorSetup',
    'TwoFactorState',
    'render_qr',
]
