import pytest

from toolhub.crypto import CredentialCipher, decrypt, encrypt
from toolhub.exceptions import ConfigurationError


@pytest.mark.parametrize("plaintext", ["k1", "", "ünïcödé 🔑", "x" * 4096])
def test_round_trip(plaintext):
    assert decrypt(encrypt(plaintext, "pass"), "pass") == plaintext


def test_encrypt_is_not_deterministic():
    first = encrypt("same", "pass")
    second = encrypt("same", "pass")

    assert first != second
    assert decrypt(first, "pass") == decrypt(second, "pass") == "same"


def test_wrong_passphrase_yields_empty_string():
    ciphertext = encrypt("secret", "right")

    assert decrypt(ciphertext, "wrong") == ""


@pytest.mark.parametrize("garbage", ["", "not-a-ciphertext", "abc.def", "!!!.@@@"])
def test_malformed_ciphertext_yields_empty_string(garbage):
    assert decrypt(garbage, "pass") == ""


@pytest.mark.parametrize("passphrase", [None, ""])
def test_missing_passphrase_is_configuration_error(passphrase):
    with pytest.raises(ConfigurationError):
        encrypt("x", passphrase)
    with pytest.raises(ConfigurationError):
        decrypt("x.y", passphrase)
    with pytest.raises(ConfigurationError):
        CredentialCipher(passphrase)


def test_cipher_object():
    cipher = CredentialCipher("pass")

    assert cipher.decrypt(cipher.encrypt("value")) == "value"
    assert "value" not in cipher.encrypt("value")
