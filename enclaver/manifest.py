"""Loading and validating enclave manifests."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

import yaml

T = TypeVar("T")

_U16_MAX = 0xFFFF
_I32_MIN = -(2**31)
_I32_MAX = 2**31 - 1


class ManifestError(ValueError):
    """Raised when a manifest cannot be read or is invalid."""


def _check_fields(data: Any, where: str, required: tuple[str, ...], optional: tuple[str, ...]) -> dict:
    if not isinstance(data, dict):
        raise ManifestError(f"{where}: expected a mapping")
    allowed = set(required) | set(optional)
    for key in data:
        if key not in allowed:
            raise ManifestError(f"{where}: unknown field `{key}`")
    for key in required:
        if key not in data:
            raise ManifestError(f"{where}: missing field `{key}`")
    return data


def _string(value: Any, where: str) -> str:
    if not isinstance(value, str):
        raise ManifestError(f"{where}: expected a string")
    return value


def _int_in_range(value: Any, where: str, low: int, high: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ManifestError(f"{where}: expected an integer")
    if not low <= value <= high:
        raise ManifestError(f"{where}: {value} is out of range {low}..={high}")
    return value


def _port(value: Any, where: str) -> int:
    return _int_in_range(value, where, 0, _U16_MAX)


def _i32(value: Any, where: str) -> int:
    return _int_in_range(value, where, _I32_MIN, _I32_MAX)


def _string_list(value: Any, where: str) -> list[str]:
    if not isinstance(value, list):
        raise ManifestError(f"{where}: expected a sequence")
    return [_string(item, f"{where}[{i}]") for i, item in enumerate(value)]


def _string_map(value: Any, where: str) -> dict[str, str]:
    if not isinstance(value, dict):
        raise ManifestError(f"{where}: expected a mapping")
    return {_string(k, f"{where} key"): _string(v, f"{where}.{k}") for k, v in value.items()}


def _optional(convert: Callable[[Any, str], T], data: dict, key: str, where: str) -> T | None:
    value = data.get(key)
    if value is None:
        return None
    return convert(value, f"{where}.{key}")


@dataclass
class Sources:
    app: str
    supervisor: str | None = None
    wrapper: str | None = None

    @classmethod
    def _from_yaml(cls, data: Any, where: str) -> Sources:
        data = _check_fields(data, where, ("app",), ("supervisor", "wrapper"))
        return cls(
            app=_string(data["app"], f"{where}.app"),
            supervisor=_optional(_string, data, "supervisor", where),
            wrapper=_optional(_string, data, "wrapper", where),
        )


@dataclass
class ServerTls:
    key_file: str
    cert_file: str

    @classmethod
    def _from_yaml(cls, data: Any, where: str) -> ServerTls:
        data = _check_fields(data, where, ("key_file", "cert_file"), ())
        return cls(
            key_file=_string(data["key_file"], f"{where}.key_file"),
            cert_file=_string(data["cert_file"], f"{where}.cert_file"),
        )


@dataclass
class Ingress:
    listen_port: int
    tls: ServerTls | None = None

    @classmethod
    def _from_yaml(cls, data: Any, where: str) -> Ingress:
        data = _check_fields(data, where, ("listen_port",), ("tls",))
        return cls(
            listen_port=_port(data["listen_port"], f"{where}.listen_port"),
            tls=_optional(ServerTls._from_yaml, data, "tls", where),
        )


@dataclass
class Egress:
    proxy_port: int | None = None
    allow: list[str] | None = None
    deny: list[str] | None = None

    @classmethod
    def _from_yaml(cls, data: Any, where: str) -> Egress:
        data = _check_fields(data, where, (), ("proxy_port", "allow", "deny"))
        return cls(
            proxy_port=_optional(_port, data, "proxy_port", where),
            allow=_optional(_string_list, data, "allow", where),
            deny=_optional(_string_list, data, "deny", where),
        )


@dataclass
class Defaults:
    cpu_count: int | None = None
    memory_mb: int | None = None

    @classmethod
    def _from_yaml(cls, data: Any, where: str) -> Defaults:
        data = _check_fields(data, where, (), ("cpu_count", "memory_mb"))
        return cls(
            cpu_count=_optional(_i32, data, "cpu_count", where),
            memory_mb=_optional(_i32, data, "memory_mb", where),
        )


@dataclass
class KmsProxy:
    listen_port: int
    endpoints: dict[str, str] | None = None

    @classmethod
    def _from_yaml(cls, data: Any, where: str) -> KmsProxy:
        data = _check_fields(data, where, ("listen_port",), ("endpoints",))
        return cls(
            listen_port=_port(data["listen_port"], f"{where}.listen_port"),
            endpoints=_optional(_string_map, data, "endpoints", where),
        )


@dataclass
class Api:
    listen_port: int

    @classmethod
    def _from_yaml(cls, data: Any, where: str) -> Api:
        data = _check_fields(data, where, ("listen_port",), ())
        return cls(listen_port=_port(data["listen_port"], f"{where}.listen_port"))


def _ingress_list(value: Any, where: str) -> list[Ingress]:
    if not isinstance(value, list):
        raise ManifestError(f"{where}: expected a sequence")
    return [Ingress._from_yaml(item, f"{where}[{i}]") for i, item in enumerate(value)]


@dataclass
class Manifest:
    version: str
    name: str
    target: str
    sources: Sources
    ingress: list[Ingress] | None = None
    egress: Egress | None = None
    defaults: Defaults | None = None
    kms_proxy: KmsProxy | None = None
    api: Api | None = None

    @classmethod
    def _from_yaml(cls, data: Any, where: str = "manifest") -> Manifest:
        data = _check_fields(
            data,
            where,
            ("version", "name", "target", "sources"),
            ("ingress", "egress", "defaults", "kms_proxy", "api"),
        )
        return cls(
            version=_string(data["version"], f"{where}.version"),
            name=_string(data["name"], f"{where}.name"),
            target=_string(data["target"], f"{where}.target"),
            sources=Sources._from_yaml(data["sources"], f"{where}.sources"),
            ingress=_optional(_ingress_list, data, "ingress", where),
            egress=_optional(Egress._from_yaml, data, "egress", where),
            defaults=_optional(Defaults._from_yaml, data, "defaults", where),
            kms_proxy=_optional(KmsProxy._from_yaml, data, "kms_proxy", where),
            api=_optional(Api._from_yaml, data, "api", where),
        )


def parse_manifest(buf: bytes | str) -> Manifest:
    """Parse a YAML manifest, rejecting unknown fields."""
    try:
        data = yaml.safe_load(buf)
    except yaml.YAMLError as err:
        raise ManifestError(str(err)) from err
    return Manifest._from_yaml(data)


def load_manifest_raw(path: str | os.PathLike) -> tuple[bytes, Manifest]:
    """Read a manifest from a file, or from stdin when path is "-"."""
    if os.fspath(path) == "-":
        buf = sys.stdin.buffer.read()
    else:
        try:
            with open(path, "rb") as handle:
                buf = handle.read()
        except OSError as err:
            raise ManifestError(f"failed to open {path}: {err}") from err

    try:
        manifest = parse_manifest(buf)
    except ManifestError as err:
        raise ManifestError(f"invalid configuration in {path}: {err}") from err

    return buf, manifest


def load_manifest(path: str | os.PathLike) -> Manifest:
    """Read and parse a manifest."""
    _, manifest = load_manifest_raw(path)
    return manifest