import pytest
from cryptography.hazmat.primitives import serialization

from enclaver.keypair import KeyPair


@pytest.fixture(scope="module")
def keypair():
    return KeyPair.generate()


def test_generated_key_size(keypair):
    assert keypair.private.key_size == 2048


def test_from_private_derives_public(keypair):
    rebuilt = KeyPair.from_private(keypair.private)
    assert rebuilt.public.public_numbers() == keypair.public.public_numbers()


def test_der_round_trip(keypair):
    loaded = serialization.load_der_public_key(keypair.public_key_as_der())
    assert loaded.public_numbers() == keypair.public.public_numbers()


def test_pem_round_trip(keypair):
    pem = keypair.public_key_as_pem()
    assert pem.startswith("-----BEGIN PUBLIC KEY-----\n")
    assert "\r" not in pem
    loaded = serialization.load_pem_public_key(pem.encode())
    assert loaded.public_numbers() == keypair.public.public_numbers()