"""
Two-Factor Enrollment

Tracks each account through the TOTP enrollment lifecycle:

    UNPROVISIONED -> PENDING_VERIFICATION(secret) -> ENABLED(secret)

The secret is stored as soon as it is generated but 2FA only takes
effect once the user proves their authenticator produces valid codes.
All TOTP math is delegated to a stateless TOTPEngine.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from io import StringIO
from typing import Dict, Optional

import qrcode
from qrcode.constants import ERROR_CORRECT_L

from .totp import DEFAULT_ISSUER, TOTPEngine
from ..errors import (
    InvalidTwoFactorCodeError,
    TwoFactorNotSetUpError,
    TwoFactorRequiredError,
)


logger = logging.getLogger(__name__)


class TwoFactorState(Enum):
    """Enrollment state of an account."""
    UNPROVISIONED = "unprovisioned"
    PENDING_VERIFICATION = "pending_verification"
    ENABLED = "enabled"


@dataclass
class TwoFactorAccount:
    """2FA view of a user account."""
    user_id: str
    account_label: str = ""
    state: TwoFactorState = TwoFactorState.UNPROVISIONED
    secret: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return self.state is TwoFactorState.ENABLED


@dataclass(frozen=True)
class TwoFactorSetup:
    """What the user needs to configure an authenticator app."""
    secret: str
    provisioning_uri: str


def render_qr(uri: str, filename: str = None) -> Optional[str]:
    """
    Render a provisioning URI as a QR code.

    Args:
        uri: otpauth:// URI
        filename: Optional filename to save a PNG image

    Returns:
        ASCII QR code string if no filename, else None
    """
    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECT_L,
        box_size=10,
        border=4,
    )
    qr.add_data(uri)
    qr.make(fit=True)

    if filename:
        img = qr.make_image(fill_color="black", back_color="white")
        img.save(filename)
        return None

    out = StringIO()
    qr.print_ascii(out=out)
    return out.getvalue()


class TwoFactorManager:
    """
    Manage TOTP enrollment and login checks for multiple users.

    Accounts are kept in memory; a real deployment persists
    TwoFactorAccount in its user store.

    Example:
        >>> manager = TwoFactorManager()
        >>> setup = manager.setup("uid-1", "alice@example.com")
        >>> manager.state("uid-1")
        <TwoFactorState.PENDING_VERIFICATION: 'pending_verification'>
    """

    def __init__(self, engine: TOTPEngine = None, issuer: str = DEFAULT_ISSUER):
        """
        Args:
            engine: TOTP engine (default uses the system clock)
            issuer: Service name shown in authenticator apps
        """
        self._engine = engine or TOTPEngine()
        self._issuer = issuer
        self._accounts: Dict[str, TwoFactorAccount] = {}

    @property
    def issuer(self) -> str:
        return self._issuer

    def account(self, user_id: str) -> TwoFactorAccount:
        """Get the stored account, or a detached unprovisioned one."""
        account = self._accounts.get(user_id)
        if account is None:
            return TwoFactorAccount(user_id=user_id)
        return account

    def state(self, user_id: str) -> TwoFactorState:
        return self.account(user_id).state

    def is_enabled(self, user_id: str) -> bool:
        return self.account(user_id).enabled

    def setup(self, user_id: str, account_label: str) -> TwoFactorSetup:
        """
        Start (or restart) enrollment with a fresh secret.

        Regenerating invalidates any previously provisioned
        authenticator, so an enabled account drops back to pending.

        Args:
            user_id: User identifier
            account_label: Account name (usually email)

        Returns:
            TwoFactorSetup with secret and provisioning URI
        """
        account = self._accounts.setdefault(user_id, TwoFactorAccount(user_id=user_id))
        secret = self._engine.generate_secret()

        account.account_label = account_label
        account.secret = secret
        account.state = TwoFactorState.PENDING_VERIFICATION

        logger.info("Started 2FA enrollment for user %s", user_id)
        uri = self._engine.build_provisioning_uri(account_label, self._issuer, secret)
        return TwoFactorSetup(secret=secret, provisioning_uri=uri)

    def confirm(self, user_id: str, code: str) -> TwoFactorAccount:
        """
        Confirm enrollment with a code from the authenticator app.

        Raises:
            TwoFactorNotSetUpError: If setup() was never called
            InvalidTwoFactorCodeError: If the code does not verify
        """
        account = self.account(user_id)
        if not account.secret:
            raise TwoFactorNotSetUpError("2FA not set up")

        if not self._engine.verify_code(code, account.secret):
            logger.warning("2FA confirmation failed for user %s", user_id)
            raise InvalidTwoFactorCodeError("Invalid 2FA code")

        account.state = TwoFactorState.ENABLED
        logger.info("Enabled 2FA for user %s", user_id)
        return account

    def verify_login(self, user_id: str, code: str = None) -> bool:
        """
        Second-factor check after the password step succeeded.

        Args:
            user_id: User identifier
            code: Code from the authenticator app, if the user gave one

        Returns:
            True if 2FA was checked, False if the account has none

        Raises:
            TwoFactorRequiredError: 2FA enabled and no code supplied
            InvalidTwoFactorCodeError: Code does not verify
        """
        account = self.account(user_id)
        if not account.enabled:
            return False

        if code is None or not code.strip():
            raise TwoFactorRequiredError("2FA code required")

        if not self._engine.verify_code(code, account.secret):
            logger.warning("2FA login check failed for user %s", user_id)
            raise InvalidTwoFactorCodeError("Invalid 2FA code")

        return True

    def disable(self, user_id: str) -> bool:
        """Turn 2FA off and forget the secret."""
        account = self._accounts.pop(user_id, None)
        had_secret = account is not None and account.secret is not None

        if had_secret:
            logger.info("Disabled 2FA for user %s", user_id)
        return had_secret

    def provisioning_uri(self, user_id: str) -> str:
        """Rebuild the URI for an account that has a secret."""
        account = self.account(user_id)
        if not account.secret:
            raise TwoFactorNotSetUpError("2FA not set up")
        return self._engine.build_provisioning_uri(
            account.account_label, self._issuer, account.secret
        )

    def qr_code(self, user_id: str, filename: str = None) -> Optional[str]:
        """Render the account's provisioning URI as a QR code."""
        return render_qr(self.provisioning_uri(user_id), filename)
