"""The enclave's local HTTP API."""

from __future__ import annotations

import base64
import binascii
import json
import re
from dataclasses import dataclass
from http import HTTPStatus

from enclaver.http_util import (
    HttpHandler,
    Request,
    Response,
    bad_request,
    method_not_allowed,
    not_found,
)
from enclaver.nsm import AttestationParams, AttestationProvider

MIME_APPLICATION_CBOR = "application/cbor"

_PEM_RE = re.compile(r"-----BEGIN PUBLIC KEY-----(.*?)-----END PUBLIC KEY-----", re.S)

_TAG_SEQUENCE = 0x30
_TAG_BIT_STRING = 0x03


def _der_element(data: bytes, pos: int, expected_tag: int) -> tuple[bytes, int]:
    if pos + 2 > len(data):
        raise ValueError("truncated DER data")
    tag, length = data[pos], data[pos + 1]
    pos += 2
    if tag != expected_tag:
        raise ValueError(f"unexpected DER tag 0x{tag:02x}")
    if length & 0x80:
        count = length & 0x7F
        if not 1 <= count <= 4 or pos + count > len(data):
            raise ValueError("invalid DER length")
        length = int.from_bytes(data[pos : pos + count], "big")
        pos += count
    end = pos + length
    if end > len(data):
        raise ValueError("truncated DER data")
    return data[pos:end], end


def pem_decode(pem: str) -> bytes:
    """Return the subject public key bytes of a PEM-encoded SubjectPublicKeyInfo."""
    match = _PEM_RE.fullmatch(pem.strip())
    if match is None:
        raise ValueError("not a PEM-encoded public key")
    try:
        der = base64.b64decode("".join(match.group(1).split()), validate=True)
    except binascii.Error as err:
        raise ValueError(f"invalid PEM body: {err}") from err

    spki, end = _der_element(der, 0, _TAG_SEQUENCE)
    if end != len(der):
        raise ValueError("trailing data after public key")
    _, pos = _der_element(spki, 0, _TAG_SEQUENCE)
    bits, pos = _der_element(spki, pos, _TAG_BIT_STRING)
    if pos != len(spki):
        raise ValueError("trailing data in public key info")
    if not bits or bits[0] != 0:
        raise ValueError("public key bit string has unused bits")
    return bits[1:]


def _optional_string(data: dict, key: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"invalid type for `{key}`: expected a string")
    return value


@dataclass(frozen=True)
class AttestationRequest:
    nonce: str | None = None
    public_key: str | None = None
    user_data: str | None = None

    @classmethod
    def from_json(cls, body: bytes | str) -> AttestationRequest:
        data = json.loads(body)
        if not isinstance(data, dict):
            raise ValueError("expected a JSON object")
        return cls(
            nonce=_optional_string(data, "nonce"),
            public_key=_optional_string(data, "public_key"),
            user_data=_optional_string(data, "user_data"),
        )

    def into_params(self) -> AttestationParams:
        def decode(value: str | None) -> bytes | None:
            return None if value is None else base64.b64decode(value, validate=True)

        return AttestationParams(
            nonce=decode(self.nonce),
            public_key=None if self.public_key is None else pem_decode(self.public_key),
            user_data=decode(self.user_data),
        )


class ApiHandler(HttpHandler):
    """Serves attestation documents over HTTP."""

    def __init__(self, attester: AttestationProvider) -> None:
        self._attester = attester

    async def handle(self, req: Request) -> Response:
        if req.path != "/v1/attestation":
            return not_found()
        if req.method != "POST":
            return method_not_allowed()
        return self._handle_attestation(req.body)

    def _handle_attestation(self, body: bytes) -> Response:
        try:
            attestation_req = AttestationRequest.from_json(body)
        except ValueError as err:
            return bad_request(str(err))

        try:
            params = attestation_req.into_params()
        except ValueError as err:
            return bad_request(str(err))

        doc = self._attester.attestation(params)
        return Response(HTTPStatus.OK, doc, {"Content-Type": MIME_APPLICATION_CBOR})