"""Attestation providers."""

from __future__ import annotations

import abc
from dataclasses import dataclass


@dataclass(frozen=True)
class AttestationParams:
    nonce: bytes | None = None
    user_data: bytes | None = None
    public_key: bytes | None = None


class AttestationProvider(abc.ABC):
    """Something that produces attestation documents."""

    @abc.abstractmethod
    def attestation(self, params: AttestationParams) -> bytes:
        """Return an attestation document for the given parameters."""


class StaticAttestationProvider(AttestationProvider):
    """Always returns the same document; useful in tests."""

    def __init__(self, doc: bytes) -> None:
        self._doc = bytes(doc)

    def attestation(self, params: AttestationParams) -> bytes:
        return self._doc