import pytest

from enclaver.nsm import AttestationParams, AttestationProvider, StaticAttestationProvider


def test_params_default_to_none():
    params = AttestationParams()
    assert (params.nonce, params.user_data, params.public_key) == (None, None, None)


def test_static_provider_ignores_params():
    provider = StaticAttestationProvider(b"document")
    first = provider.attestation(AttestationParams())
    second = provider.attestation(AttestationParams(nonce=b"n", user_data=b"u", public_key=b"k"))
    assert first == b"document"
    assert second == first


def test_static_provider_copies_input():
    doc = bytearray(b"abc")
    provider = StaticAttestationProvider(doc)
    doc[0] = ord("z")
    assert provider.attestation(AttestationParams()) == b"abc"


def test_provider_is_abstract():
    with pytest.raises(TypeError):
        AttestationProvider()