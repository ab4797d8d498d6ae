"""
Base32 Codec

RFC 4648 Base32 as used for TOTP secrets.

- Encoding is uppercase with padding stripped
- Decoding is permissive: case-insensitive, characters outside the
  alphabet are dropped, a trailing partial byte is discarded
"""

import base64

BASE32_ALPHABET = 'ABCDEFGHIJKLMNOPQRSTUVWXYZ234567'

_CHAR_VALUES = {char: index for index, char in enumerate(BASE32_ALPHABET)}


def encode(data: bytes) -> str:
    """
    Encode bytes as unpadded uppercase Base32.

    Args:
        data: Raw bytes

    Returns:
        Base32 string without '=' padding
    """
    return base64.b32encode(bytes(data)).decode('ascii').rstrip('=')


def decode(text: str) -> bytes:
    """
    Decode a Base32 string, ignoring anything outside the alphabet.

    Stray whitespace, hyphens and padding are skipped rather than
    rejected, so the result may be shorter than expected for malformed
    input but this never raises.

    Args:
        text: Base32 string (any case)

    Returns:
        Decoded bytes (possibly empty)
    """
    value = 0
    bits = 0
    out = bytearray()

    for char in text.upper():
        char_value = _CHAR_VALUES.get(char)
        if char_value is None:
            continue

        value = ((value << 5) | char_value) & 0xFFFF
        bits += 5

        if bits >= 8:
            bits -= 8
            out.append((value >> bits) & 0xFF)

    return bytes(out)


def clean(text: str) -> str:
    """Normalize a secret to the characters decode() actually uses."""
    return ''.join(char for char in text.upper() if char in _CHAR_VALUES)
