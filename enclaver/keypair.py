"""RSA key pairs."""

from __future__ import annotations

from dataclasses import dataclass

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

RSA_KEY_LEN = 2048


@dataclass(frozen=True)
class KeyPair:
    private: rsa.RSAPrivateKey
    public: rsa.RSAPublicKey

    @classmethod
    def generate(cls) -> KeyPair:
        private = rsa.generate_private_key(public_exponent=65537, key_size=RSA_KEY_LEN)
        return cls.from_private(private)

    @classmethod
    def from_private(cls, private: rsa.RSAPrivateKey) -> KeyPair:
        return cls(private=private, public=private.public_key())

    def public_key_as_der(self) -> bytes:
        """The public key as DER-encoded SubjectPublicKeyInfo."""
        return self.public.public_bytes(
            serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
        )

    def public_key_as_pem(self) -> str:
        """The public key as PEM-encoded SubjectPublicKeyInfo with LF line endings."""
        return self.public.public_bytes(
            serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
        ).decode("ascii")