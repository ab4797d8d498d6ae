"""
SecureCloud - Main Entry Point

Command line access to the file cipher and TOTP tools.
"""

import argparse
import json
import logging
import sys

from .auth.totp import DEFAULT_ISSUER, TOTP_DRIFT_TOLERANCE, TOTPEngine
from .auth.two_factor import render_qr
from .errors import SecureCloudError
from .files.file_cipher import KDF_PBKDF2, PBKDF2_ITERATIONS, SUPPORTED_KDFS
from .files.records import decrypt_file, encrypt_file


logger = logging.getLogger(__name__)


def _cipher_options(args) -> dict:
    return {'kdf': args.kdf, 'iterations': args.iterations}


def cmd_encrypt(args) -> int:
    record = encrypt_file(args.input, args.output, args.key, **_cipher_options(args))
    print(json.dumps(record.to_dict(), indent=2))
    return 0


def cmd_decrypt(args) -> int:
    result = decrypt_file(args.input, args.output, args.key, args.iv, **_cipher_options(args))
    print(f"Decrypted {result['decrypted_size']} bytes to {args.output}")
    return 0


def cmd_totp_secret(args) -> int:
    print(TOTPEngine().generate_secret())
    return 0


def cmd_totp_uri(args) -> int:
    uri = TOTPEngine().build_provisioning_uri(args.label, args.issuer, args.secret)
    print(uri)
    if args.qr:
        print(render_qr(uri))
    return 0


def cmd_totp_code(args) -> int:
    engine = TOTPEngine()
    print(engine.generate_code(args.secret))
    logger.debug("Code valid for %d more seconds", engine.remaining_seconds())
    return 0


def cmd_totp_verify(args) -> int:
    if TOTPEngine().verify_code(args.code, args.secret, args.window):
        print("valid")
        return 0
    print("invalid")
    return 1


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="securecloud", description="SecureCloud file encryption and 2FA tools")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_enc = sub.add_parser("encrypt", help="Encrypt a file")
    p_enc.add_argument("input", help="Plaintext file")
    p_enc.add_argument("output", help="Ciphertext output path")
    p_enc.add_argument("--key", required=True, help="Encryption passphrase")
    p_enc.set_defaults(func=cmd_encrypt)

    p_dec = sub.add_parser("decrypt", help="Decrypt a file")
    p_dec.add_argument("input", help="Ciphertext file")
    p_dec.add_argument("output", help="Plaintext output path")
    p_dec.add_argument("--key", required=True, help="Encryption passphrase")
    p_dec.add_argument("--iv", required=True, help="Hex IV from the file record")
    p_dec.set_defaults(func=cmd_decrypt)

    for p_cipher in (p_enc, p_dec):
        p_cipher.add_argument("--kdf", choices=SUPPORTED_KDFS, default=KDF_PBKDF2, help="Key derivation function")
        p_cipher.add_argument("--iterations", type=int, default=PBKDF2_ITERATIONS, help="PBKDF2 iterations")

    p_sec = sub.add_parser("totp-secret", help="Generate a new TOTP secret")
    p_sec.set_defaults(func=cmd_totp_secret)

    p_uri = sub.add_parser("totp-uri", help="Build an otpauth:// provisioning URI")
    p_uri.add_argument("label", help="Account label (usually email)")
    p_uri.add_argument("--secret", required=True, help="Base32 secret")
    p_uri.add_argument("--issuer", default=DEFAULT_ISSUER, help="Issuer name")
    p_uri.add_argument("--qr", action="store_true", help="Also print an ASCII QR code")
    p_uri.set_defaults(func=cmd_totp_uri)

    p_code = sub.add_parser("totp-code", help="Print the current TOTP code")
    p_code.add_argument("--secret", required=True, help="Base32 secret")
    p_code.set_defaults(func=cmd_totp_code)

    p_ver = sub.add_parser("totp-verify", help="Check a TOTP code")
    p_ver.add_argument("code", help="Code to verify")
    p_ver.add_argument("--secret", required=True, help="Base32 secret")
    p_ver.add_argument("--window", type=int, default=TOTP_DRIFT_TOLERANCE, help="Accepted steps either side")
    p_ver.set_defaults(func=cmd_totp_verify)

    return p


def main(argv=None) -> int:
    """Main entry point for SecureCloud."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        return args.func(args)
    except (SecureCloudError, ValueError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
