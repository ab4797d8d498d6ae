# SecureCloud Test Suite
"""
Test suite including:
- Unit tests (file cipher, Base32, TOTP, two-factor)
- Integration tests (upload/download, enrollment/login)
- Security tests (invalid inputs, tampering, secret hygiene)

Run with: pytest
"""
