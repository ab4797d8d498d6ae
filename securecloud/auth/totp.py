"""
TOTP (Time-based One-Time Password) Implementation

Implements RFC 6238 TOTP on top of RFC 4226 HOTP for two-factor
authentication.

Features:
- HMAC-SHA1 HOTP with dynamic truncation
- Base32 secret generation (160 bits)
- otpauth:// provisioning URIs for authenticator apps
- Sliding-window verification with an injectable clock

Used with:
- Google Authenticator
- Authy
- Microsoft Authenticator
- Any RFC 6238 compliant authenticator
"""

import hmac
import hashlib
import logging
import secrets
import struct
import time
from typing import Callable, Optional
from urllib.parse import quote

from . import base32
from ..errors import InvalidSecretError


logger = logging.getLogger(__name__)


# TOTP configuration (RFC 6238 defaults)
TOTP_DIGITS = 6           # Number of digits in OTP
TOTP_TIME_STEP = 30       # Time step in seconds
TOTP_SECRET_BYTES = 20    # Secret key length (160 bits for SHA-1)
TOTP_DRIFT_TOLERANCE = 1  # Accept codes from +/- this many time steps
DEFAULT_ISSUER = "SecureCloud"

# Same unreserved set as JavaScript's encodeURIComponent
_URI_COMPONENT_SAFE = "-_.!~*'()"

Clock = Callable[[], float]


def generate_secret(length: int = TOTP_SECRET_BYTES) -> str:
    """
    Generate a cryptographically secure Base32 secret.

    Args:
        length: Secret length in bytes (default 20 for SHA-1)

    Returns:
        Unpadded uppercase Base32 string
    """
    return base32.encode(secrets.token_bytes(length))


def secret_to_bytes(secret: str) -> bytes:
    """
    Decode a Base32 secret into HMAC key bytes.

    Raises:
        InvalidSecretError: If nothing usable survives decoding
    """
    key = base32.decode(secret)
    if not key:
        raise InvalidSecretError("TOTP secret decodes to zero bytes")
    return key


def build_provisioning_uri(account_label: str, issuer: str, secret: str) -> str:
    """
    Generate otpauth:// URI for QR code.

    This URI can be encoded as a QR code and scanned by
    authenticator apps like Google Authenticator.

    Args:
        account_label: Account identifier (usually email)
        issuer: Service name shown in authenticator apps
        secret: Base32 secret

    Returns:
        otpauth:// URI string
    """
    encoded_issuer = quote(issuer, safe=_URI_COMPONENT_SAFE)
    encoded_label = quote(account_label, safe=_URI_COMPONENT_SAFE)
    encoded_secret = quote(secret, safe=_URI_COMPONENT_SAFE)
    return (
        f"otpauth://totp/{encoded_issuer}:{encoded_label}"
        f"?secret={encoded_secret}&issuer={encoded_issuer}"
    )


def time_counter(timestamp: float, time_step: int = TOTP_TIME_STEP) -> int:
    """
    Get the time counter value for TOTP.

    Returns:
        Time counter (T = floor(time / time_step))
    """
    return int(timestamp // time_step)


def hotp(key: bytes, counter: int, digits: int = TOTP_DIGITS) -> str:
    """
    Generate HOTP (HMAC-based OTP) value.

    Implements RFC 4226 with HMAC-SHA1.

    Args:
        key: Shared secret key bytes
        counter: Counter value (8-byte unsigned integer)
        digits: Number of digits in OTP (default 6)

    Returns:
        OTP string with specified number of digits
    """
    if counter < 0:
        raise ValueError("HOTP counter must be non-negative")

    # Pack counter as 8-byte big-endian integer
    counter_bytes = struct.pack('>Q', counter)

    digest = hmac.new(key, counter_bytes, hashlib.sha1).digest()

    # Dynamic truncation (RFC 4226)
    offset = digest[-1] & 0x0F
    truncated = struct.unpack('>I', digest[offset:offset + 4])[0]
    truncated &= 0x7FFFFFFF

    return str(truncated % (10 ** digits)).zfill(digits)


def normalize_code(candidate: str) -> str:
    """Strip all whitespace from a user-entered code."""
    return ''.join(str(candidate).split())


def generate_code(secret: str, time_step_offset: int = 0,
                  timestamp: Optional[float] = None) -> str:
    """
    Generate the TOTP code for a Base32 secret.

    Args:
        secret: Base32 secret
        time_step_offset: Steps to add to the current counter
        timestamp: Unix timestamp (uses current time if None)

    Returns:
        6-digit code string
    """
    return _engine_at(timestamp).generate_code(secret, time_step_offset)


def verify_code(candidate: str, secret: str,
                window: int = TOTP_DRIFT_TOLERANCE,
                timestamp: Optional[float] = None) -> bool:
    """
    Verify a TOTP code with drift tolerance.

    Checks the code against the current time step and +/- window
    time steps to account for clock drift.

    Args:
        candidate: OTP code to verify (whitespace is ignored)
        secret: Base32 secret
        window: Number of time steps to check in each direction
        timestamp: Unix timestamp (uses current time if None)

    Returns:
        True if code is valid, False otherwise
    """
    return _engine_at(timestamp).verify_code(candidate, secret, window)


def get_remaining_seconds(timestamp: Optional[float] = None,
                          time_step: int = TOTP_TIME_STEP) -> int:
    """Get seconds remaining until the next TOTP code."""
    if timestamp is None:
        timestamp = time.time()
    return time_step - (int(timestamp) % time_step)


class TOTPEngine:
    """
    Stateless TOTP generator and verifier bound to a clock.

    The clock is any zero-argument callable returning Unix seconds,
    so tests can freeze time without patching globals.

    Example:
        >>> engine = TOTPEngine(clock=lambda: 59)
        >>> engine.generate_code("JBSWY3DPEHPK3PXP")
        '996554'
    """

    def __init__(self, clock: Optional[Clock] = None,
                 digits: int = TOTP_DIGITS,
                 time_step: int = TOTP_TIME_STEP,
                 window: int = TOTP_DRIFT_TOLERANCE):
        if digits <= 0:
            raise ValueError("digits must be > 0")
        if time_step <= 0:
            raise ValueError("time_step must be > 0")
        if window < 0:
            raise ValueError("window must be >= 0")

        self._clock = clock or time.time
        self._digits = digits
        self._time_step = time_step
        self._window = window

    @property
    def digits(self) -> int:
        """Number of digits in OTP."""
        return self._digits

    @property
    def time_step(self) -> int:
        """Time step in seconds."""
        return self._time_step

    @property
    def window(self) -> int:
        """Default verification window."""
        return self._window

    def generate_secret(self) -> str:
        """Generate a new 160-bit Base32 secret."""
        return generate_secret()

    def build_provisioning_uri(self, account_label: str, issuer: str,
                               secret: str) -> str:
        """Build the otpauth:// URI for an account."""
        return build_provisioning_uri(account_label, issuer, secret)

    def current_counter(self) -> int:
        """Counter for the clock's current time step."""
        return time_counter(self._clock(), self._time_step)

    def generate_code(self, secret: str, time_step_offset: int = 0) -> str:
        """
        Generate the code for the current time step plus an offset.

        Args:
            secret: Base32 secret
            time_step_offset: Steps to add to the current counter

        Returns:
            Zero-padded code string
        """
        key = secret_to_bytes(secret)
        return hotp(key, self.current_counter() + time_step_offset, self._digits)

    def verify_code(self, candidate: str, secret: str,
                    window: Optional[int] = None) -> bool:
        """
        Verify a code against the previous/current/next steps.

        Args:
            candidate: User-entered code (whitespace is ignored)
            secret: Base32 secret
            window: Steps to accept either side (engine default if None)

        Returns:
            True on the first matching step, False otherwise
        """
        if window is None:
            window = self._window
        if window < 0:
            raise ValueError("Verification window must be non-negative")

        code = normalize_code(candidate)
        if len(code) != self._digits or not (code.isascii() and code.isdigit()):
            logger.debug("Rejected TOTP candidate with invalid format")
            return False

        key = secret_to_bytes(secret)
        current_counter = self.current_counter()

        for offset in range(-window, window + 1):
            counter = current_counter + offset
            if counter < 0:
                continue
            if hmac.compare_digest(code, hotp(key, counter, self._digits)):
                logger.debug("TOTP code matched at step offset %d", offset)
                return True

        logger.debug("TOTP code did not match within window %d", window)
        return False

    def remaining_seconds(self) -> int:
        """Get seconds until next code."""
        return get_remaining_seconds(self._clock(), self._time_step)

    def __repr__(self) -> str:
        return f"TOTPEngine(digits={self._digits}, time_step={self._time_step}, window={self._window})"


def _engine_at(timestamp: Optional[float]) -> TOTPEngine:
    if timestamp is None:
        return TOTPEngine()
    return TOTPEngine(clock=lambda: timestamp)
