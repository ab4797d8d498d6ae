"""
Unit tests for Authentication module.

Tests:
- Base32 codec (RFC 4648)
- HOTP/TOTP (RFC 4226 / RFC 6238 test vectors)
- Provisioning URIs
- Two-factor enrollment state machine
"""

import pytest
import os
from unittest.mock import patch

import pyotp

from securecloud.auth import base32
from securecloud.auth.totp import (
    TOTPEngine, hotp, generate_secret, generate_code, verify_code,
    build_provisioning_uri, secret_to_bytes, time_counter,
    TOTP_DIGITS, TOTP_TIME_STEP
)
from securecloud.auth.two_factor import (
    TwoFactorManager, TwoFactorState, render_qr
)
from securecloud.errors import (
    InvalidSecretError, InvalidTwoFactorCodeError,
    TwoFactorNotSetUpError, TwoFactorRequiredError
)


GOLDEN_SECRET = "JBSWY3DPEHPK3PXP"  # b"Hello!\xde\xad\xbe\xef"
RFC6238_SECRET = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"  # b"12345678901234567890"
FIXED_TIME = 1700000000


def fixed_clock(timestamp):
    return lambda: timestamp


def wrong_code_for(engine, secret):
    """A code that fails every step in the default window."""
    accepted = {engine.generate_code(secret, offset) for offset in (-1, 0, 1)}
    for candidate in ("000000", "111111", "222222", "333333"):
        if candidate not in accepted:
            return candidate


class TestBase32:
    """Tests for the Base32 codec."""

    @pytest.mark.parametrize("raw, encoded", [
        (b"", ""),
        (b"f", "MY"),
        (b"fo", "MZXQ"),
        (b"foo", "MZXW6"),
        (b"foob", "MZXW6YQ"),
        (b"fooba", "MZXW6YTB"),
        (b"foobar", "MZXW6YTBOI"),
        (b"Hello!\xde\xad\xbe\xef", GOLDEN_SECRET),
        (b"12345678901234567890", RFC6238_SECRET),
    ])
    def test_rfc4648_vectors(self, raw, encoded):
        assert base32.encode(raw) == encoded
        assert base32.decode(encoded) == raw

    def test_round_trip_random(self):
        for length in range(0, 65):
            data = os.urandom(length)
            assert base32.decode(base32.encode(data)) == data

    def test_decode_case_insensitive(self):
        assert base32.decode(GOLDEN_SECRET.lower()) == base32.decode(GOLDEN_SECRET)

    def test_decode_ignores_formatting(self):
        """Whitespace, hyphens and padding are skipped."""
        assert base32.decode("jbsw y3dp-ehpk 3pxp") == b"Hello!\xde\xad\xbe\xef"
        assert base32.decode("MZXW6===") == b"foo"

    def test_decode_drops_invalid_characters(self):
        assert base32.decode("MZ0XW18W6") == b"foo"

    def test_decode_truncates_partial_byte(self):
        assert base32.decode("A") == b""
        assert base32.decode("MZX") == b"f"

    def test_decode_garbage_is_empty(self):
        assert base32.decode("!!!???") == b""

    def test_encode_has_no_padding(self):
        assert "=" not in base32.encode(b"f")

    def test_clean(self):
        assert base32.clean("jbsw-y3dp 8") == "JBSWY3DP"


class TestHOTP:
    """Tests for the HOTP primitive."""

    def test_rfc4226_vectors(self):
        """RFC 4226 Appendix D test values."""
        secret = b"12345678901234567890"
        expected = [
            "755224", "287082", "359152", "969429", "338314",
            "254676", "287922", "162583", "399871", "520489"
        ]
        for counter, code in enumerate(expected):
            assert hotp(secret, counter) == code

    def test_negative_counter_rejected(self):
        with pytest.raises(ValueError):
            hotp(b"key", -1)

    def test_time_counter(self):
        assert time_counter(59) == 1
        assert time_counter(60) == 2
        assert time_counter(29.999) == 0


class TestTOTPEngine:
    """Tests for TOTP generation and verification."""

    @pytest.mark.parametrize("timestamp, code", [
        (59, "287082"),
        (1111111109, "081804"),
        (1111111111, "050471"),
        (1234567890, "005924"),
        (2000000000, "279037"),
    ])
    def test_rfc6238_vectors(self, timestamp, code):
        """RFC 6238 Appendix B (SHA-1), last six digits."""
        engine = TOTPEngine(clock=fixed_clock(timestamp))
        assert engine.generate_code(RFC6238_SECRET) == code

    @pytest.mark.parametrize("timestamp, code", [
        (59, "996554"),
        (1111111109, "071271"),
        (FIXED_TIME, "324550"),
    ])
    def test_golden_vectors(self, timestamp, code):
        engine = TOTPEngine(clock=fixed_clock(timestamp))
        assert engine.generate_code(GOLDEN_SECRET) == code

    def test_offsets(self):
        engine = TOTPEngine(clock=fixed_clock(FIXED_TIME))
        assert engine.generate_code(GOLDEN_SECRET, -1) == "822542"
        assert engine.generate_code(GOLDEN_SECRET, 1) == "367665"

    @pytest.mark.parametrize("timestamp", [30, 59, 1111111109, FIXED_TIME, 2000000000])
    def test_matches_pyotp(self, timestamp):
        secret = generate_secret()
        engine = TOTPEngine(clock=fixed_clock(timestamp))
        assert engine.generate_code(secret) == pyotp.TOTP(secret).at(timestamp)

    def test_code_format(self):
        code = TOTPEngine().generate_code(generate_secret())
        assert len(code) == TOTP_DIGITS
        assert code.isdigit()

    def test_deterministic_within_step(self):
        """Same 30-second window gives the same code."""
        start = FIXED_TIME - (FIXED_TIME % TOTP_TIME_STEP)
        secret = generate_secret()
        first = TOTPEngine(clock=fixed_clock(start)).generate_code(secret)
        last = TOTPEngine(clock=fixed_clock(start + TOTP_TIME_STEP - 1)).generate_code(secret)
        assert first == last

    def test_verify_current_code(self):
        engine = TOTPEngine(clock=fixed_clock(FIXED_TIME))
        assert engine.verify_code("324550", GOLDEN_SECRET)

    def test_verify_strips_whitespace(self):
        engine = TOTPEngine(clock=fixed_clock(FIXED_TIME))
        assert engine.verify_code(" 324 550\n", GOLDEN_SECRET)

    def test_window_tolerance(self):
        """Previous-step code passes window=1 and fails window=0."""
        engine = TOTPEngine(clock=fixed_clock(FIXED_TIME))
        code = engine.generate_code(GOLDEN_SECRET, -1)
        assert engine.verify_code(code, GOLDEN_SECRET, window=1)
        assert not engine.verify_code(code, GOLDEN_SECRET, window=0)

    def test_code_from_earlier_time_verifies_later(self):
        secret = generate_secret()
        code = TOTPEngine(clock=fixed_clock(FIXED_TIME)).generate_code(secret)
        later = TOTPEngine(clock=fixed_clock(FIXED_TIME + TOTP_TIME_STEP))
        assert later.verify_code(code, secret, window=1)

    def test_expired_code_rejected(self):
        engine = TOTPEngine(clock=fixed_clock(FIXED_TIME + TOTP_TIME_STEP * 60))
        assert not engine.verify_code("324550", GOLDEN_SECRET)

    def test_invalid_format_rejected(self):
        engine = TOTPEngine(clock=fixed_clock(FIXED_TIME))
        assert not engine.verify_code("", GOLDEN_SECRET)
        assert not engine.verify_code("32455", GOLDEN_SECRET)
        assert not engine.verify_code("3245500", GOLDEN_SECRET)
        assert not engine.verify_code("abcdef", GOLDEN_SECRET)

    @pytest.mark.parametrize("candidate", [
        "\uff13\uff12\uff14\uff15\uff15\uff10",  # full-width 324550
        "\u0663\u0662\u0664\u0665\u0665\u0660",  # Arabic-Indic 324550
        "\u00b2" * 6,
        "32455\u0660",
    ])
    def test_non_ascii_digits_rejected(self, candidate):
        engine = TOTPEngine(clock=fixed_clock(FIXED_TIME))
        assert engine.verify_code(candidate, GOLDEN_SECRET) is False

    def test_negative_window_rejected(self):
        with pytest.raises(ValueError):
            TOTPEngine().verify_code("123456", GOLDEN_SECRET, window=-1)

    def test_epoch_skips_negative_counter(self):
        engine = TOTPEngine(clock=fixed_clock(0))
        code = engine.generate_code(GOLDEN_SECRET)
        assert engine.verify_code(code, GOLDEN_SECRET, window=1)
        with pytest.raises(ValueError):
            engine.generate_code(GOLDEN_SECRET, -1)

    def test_invalid_secret(self):
        engine = TOTPEngine(clock=fixed_clock(FIXED_TIME))
        with pytest.raises(InvalidSecretError):
            engine.generate_code("!!!!")
        with pytest.raises(InvalidSecretError):
            engine.verify_code("123456", "1")
        with pytest.raises(InvalidSecretError):
            secret_to_bytes("")

    def test_zeros_rarely_verify(self):
        """'000000' should almost never match a random secret."""
        engine = TOTPEngine()
        matches = sum(engine.verify_code("000000", generate_secret()) for _ in range(300))
        assert matches <= 1

    def test_remaining_seconds(self):
        assert TOTPEngine(clock=fixed_clock(60)).remaining_seconds() == 30
        assert TOTPEngine(clock=fixed_clock(89)).remaining_seconds() == 1

    def test_bad_configuration(self):
        with pytest.raises(ValueError):
            TOTPEngine(time_step=0)
        with pytest.raises(ValueError):
            TOTPEngine(window=-1)


class TestModuleFunctions:
    """Tests for the module-level TOTP helpers."""

    def test_generate_secret(self):
        secret = generate_secret()
        assert len(secret) == 32
        assert set(secret) <= set(base32.BASE32_ALPHABET)
        assert len(base32.decode(secret)) == 20

    def test_secrets_unique(self):
        assert len({generate_secret() for _ in range(100)}) == 100

    def test_generate_code_timestamp(self):
        assert generate_code(GOLDEN_SECRET, timestamp=59) == "996554"
        assert generate_code(GOLDEN_SECRET, 1, timestamp=FIXED_TIME) == "367665"

    def test_verify_code_timestamp(self):
        assert verify_code("822542", GOLDEN_SECRET, timestamp=FIXED_TIME)
        assert not verify_code("822542", GOLDEN_SECRET, window=0, timestamp=FIXED_TIME)

    def test_system_clock(self):
        with patch("securecloud.auth.totp.time.time", return_value=FIXED_TIME):
            assert generate_code(GOLDEN_SECRET) == "324550"
            assert verify_code("324550", GOLDEN_SECRET)


class TestProvisioningURI:
    """Tests for otpauth:// URIs."""

    def test_format(self):
        uri = build_provisioning_uri("alice@example.com", "SecureCloud", GOLDEN_SECRET)
        assert uri == (
            "otpauth://totp/SecureCloud:alice%40example.com"
            "?secret=JBSWY3DPEHPK3PXP&issuer=SecureCloud"
        )

    def test_components_are_percent_encoded(self):
        uri = build_provisioning_uri("bob smith", "My App&Co", GOLDEN_SECRET)
        assert uri == (
            "otpauth://totp/My%20App%26Co:bob%20smith"
            "?secret=JBSWY3DPEHPK3PXP&issuer=My%20App%26Co"
        )

    def test_parsed_by_pyotp(self):
        secret = generate_secret()
        uri = build_provisioning_uri("alice@example.com", "SecureCloud", secret)
        parsed = pyotp.parse_uri(uri)
        assert parsed.secret == secret
        assert parsed.issuer == "SecureCloud"


class TestTwoFactorManager:
    """Tests for the enrollment lifecycle."""

    @pytest.fixture
    def engine(self):
        return TOTPEngine(clock=fixed_clock(FIXED_TIME))

    @pytest.fixture
    def manager(self, engine):
        return TwoFactorManager(engine=engine)

    def test_initial_state(self, manager):
        assert manager.state("uid-1") is TwoFactorState.UNPROVISIONED
        assert not manager.is_enabled("uid-1")

    def test_setup(self, manager):
        setup = manager.setup("uid-1", "alice@example.com")
        assert manager.state("uid-1") is TwoFactorState.PENDING_VERIFICATION
        assert setup.provisioning_uri.startswith("otpauth://totp/SecureCloud:alice%40example.com")
        assert f"secret={setup.secret}" in setup.provisioning_uri

    def test_confirm_enables(self, manager, engine):
        setup = manager.setup("uid-1", "alice@example.com")
        account = manager.confirm("uid-1", engine.generate_code(setup.secret))
        assert account.state is TwoFactorState.ENABLED
        assert manager.is_enabled("uid-1")

    def test_confirm_wrong_code(self, manager, engine):
        setup = manager.setup("uid-1", "alice@example.com")
        with pytest.raises(InvalidTwoFactorCodeError):
            manager.confirm("uid-1", wrong_code_for(engine, setup.secret))
        assert manager.state("uid-1") is TwoFactorState.PENDING_VERIFICATION

    def test_confirm_without_setup(self, manager):
        with pytest.raises(TwoFactorNotSetUpError):
            manager.confirm("uid-1", "123456")

    def test_login_without_2fa(self, manager):
        assert manager.verify_login("uid-1") is False

    def test_login_pending_does_not_require_code(self, manager):
        manager.setup("uid-1", "alice@example.com")
        assert manager.verify_login("uid-1") is False

    def test_login_requires_code(self, manager, engine):
        setup = manager.setup("uid-1", "alice@example.com")
        manager.confirm("uid-1", engine.generate_code(setup.secret))
        with pytest.raises(TwoFactorRequiredError):
            manager.verify_login("uid-1")
        with pytest.raises(TwoFactorRequiredError):
            manager.verify_login("uid-1", "   ")

    def test_login_with_code(self, manager, engine):
        setup = manager.setup("uid-1", "alice@example.com")
        manager.confirm("uid-1", engine.generate_code(setup.secret))
        assert manager.verify_login("uid-1", engine.generate_code(setup.secret, -1))
        with pytest.raises(InvalidTwoFactorCodeError):
            manager.verify_login("uid-1", wrong_code_for(engine, setup.secret))

    def test_regenerate_invalidates(self, manager, engine):
        first = manager.setup("uid-1", "alice@example.com")
        manager.confirm("uid-1", engine.generate_code(first.secret))
        second = manager.setup("uid-1", "alice@example.com")
        assert second.secret != first.secret
        assert manager.state("uid-1") is TwoFactorState.PENDING_VERIFICATION

    def test_disable(self, manager, engine):
        setup = manager.setup("uid-1", "alice@example.com")
        manager.confirm("uid-1", engine.generate_code(setup.secret))
        assert manager.disable("uid-1")
        assert manager.state("uid-1") is TwoFactorState.UNPROVISIONED
        assert manager.account("uid-1").secret is None
        assert not manager.disable("uid-1")

    def test_users_independent(self, manager):
        manager.setup("uid-1", "alice@example.com")
        assert manager.state("uid-2") is TwoFactorState.UNPROVISIONED

    def test_lookups_do_not_store_accounts(self, manager):
        for n in range(50):
            manager.state(f"uid-{n}")
            manager.is_enabled(f"uid-{n}")
            manager.verify_login(f"uid-{n}")
        manager.account("uid-0").secret = "JBSWY3DPEHPK3PXP"
        assert manager.state("uid-0") is TwoFactorState.UNPROVISIONED
        assert manager._accounts == {}

    def test_login_with_full_width_code(self, manager, engine):
        setup = manager.setup("uid-1", "alice@example.com")
        manager.confirm("uid-1", engine.generate_code(setup.secret))
        with pytest.raises(InvalidTwoFactorCodeError):
            manager.verify_login("uid-1", "\uff11\uff12\uff13\uff14\uff15\uff16")

    def test_provisioning_uri_requires_secret(self, manager):
        with pytest.raises(TwoFactorNotSetUpError):
            manager.provisioning_uri("uid-1")

    def test_custom_issuer(self, engine):
        manager = TwoFactorManager(engine=engine, issuer="Acme Vault")
        setup = manager.setup("uid-1", "alice@example.com")
        assert setup.provisioning_uri.endswith("&issuer=Acme%20Vault")


class TestQRCode:
    """Tests for QR rendering."""

    def test_ascii_qr(self):
        uri = build_provisioning_uri("alice@example.com", "SecureCloud", GOLDEN_SECRET)
        art = render_qr(uri)
        assert isinstance(art, str)
        assert len(art.splitlines()) > 10

    def test_png_qr(self, tmp_path):
        manager = TwoFactorManager()
        manager.setup("uid-1", "alice@example.com")
        target = tmp_path / "qr.png"
        assert manager.qr_code("uid-1", str(target)) is None
        assert target.read_bytes().startswith(b"\x89PNG")
