"""Unit tests for ticket code generation."""

from bookeros.services.codes import (
    ALPHANUMERIC_ALPHABET,
    generate_alphanumeric_code,
    generate_qr_token,
    generate_referral_code,
    is_valid_alphanumeric_code,
)


def test_alphanumeric_code_format():
    code = generate_alphanumeric_code()

    groups = code.split("-")
    assert len(code) == 19
    assert len(groups) == 4
    assert all(len(g) == 4 for g in groups)
    assert all(ch in ALPHANUMERIC_ALPHABET for ch in code.replace("-", ""))
    assert is_valid_alphanumeric_code(code)


def test_alphanumeric_alphabet_skips_ambiguous_glyphs():
    for ch in "01OIL":
        assert ch not in ALPHANUMERIC_ALPHABET


def test_code_validation_is_case_insensitive_and_trims():
    assert is_valid_alphanumeric_code("  abcd-efgh-jkmn-pqrs ")
    assert not is_valid_alphanumeric_code("ABCD-EFGH-JKMN")
    assert not is_valid_alphanumeric_code("ABCD-EFGH-JKMN-PQR0")
    assert not is_valid_alphanumeric_code("ABCDEFGHJKMNPQRS")


def test_qr_tokens_are_unique():
    tokens = {generate_qr_token() for _ in range(200)}
    assert len(tokens) == 200


def test_referral_code_prefix():
    assert generate_referral_code("maria_lopez").startswith("MARIAL-")
    assert generate_referral_code("__").startswith("REF-")
