"""Running the nitro-cli tool and decoding its JSON output."""

from __future__ import annotations

import enum
import json
import logging
import os
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from typing import IO, Any, Protocol

_log = logging.getLogger(__name__)

_SUPPORT_TICKET_PREFIX = "If you open a support ticket, please provide the error log found at \""


class NitroCLIError(RuntimeError):
    """Raised when nitro-cli cannot be run, fails, or returns unexpected output."""


class _Args(Protocol):
    def to_args(self) -> list[str]: ...


def _field(data: Mapping[str, Any], key: str, kind: type) -> Any:
    try:
        value = data[key]
    except (KeyError, TypeError) as err:
        raise NitroCLIError(f"missing field `{key}` in nitro-cli output") from err
    if kind is int and isinstance(value, bool):
        raise NitroCLIError(f"field `{key}` has the wrong type")
    if not isinstance(value, kind):
        raise NitroCLIError(f"field `{key}` has the wrong type")
    return value


@dataclass(frozen=True)
class EIFMeasurements:
    pcr0: str
    pcr1: str
    pcr2: str


@dataclass(frozen=True)
class EIFInfo:
    measurements: EIFMeasurements

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> EIFInfo:
        raw = _field(data, "Measurements", Mapping)
        return cls(
            EIFMeasurements(
                pcr0=_field(raw, "PCR0", str),
                pcr1=_field(raw, "PCR1", str),
                pcr2=_field(raw, "PCR2", str),
            )
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "Measurements": {
                "PCR0": self.measurements.pcr0,
                "PCR1": self.measurements.pcr1,
                "PCR2": self.measurements.pcr2,
            }
        }


@dataclass(frozen=True)
class EnclaveInfo:
    name: str
    id: str
    process_id: int
    cid: int

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> EnclaveInfo:
        return cls(
            name=_field(data, "EnclaveName", str),
            id=_field(data, "EnclaveID", str),
            process_id=_field(data, "ProcessID", int),
            cid=_field(data, "EnclaveCID", int),
        )


@dataclass(frozen=True)
class EnclaveTerminationStatus:
    id: str
    terminated: bool

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> EnclaveTerminationStatus:
        return cls(
            id=_field(data, "EnclaveID", str),
            terminated=_field(data, "Terminated", bool),
        )


@dataclass
class RunEnclaveArgs:
    cpu_count: int
    memory_mb: int
    eif_path: str | os.PathLike
    cid: int | None = None
    debug_mode: bool = False

    def to_args(self) -> list[str]:
        if self.cpu_count < 1:
            raise NitroCLIError(f"at least 1 CPU is required, got: {self.cpu_count}")
        if self.memory_mb < 64:
            raise NitroCLIError(f"at least 64MiB of memory are required, got: {self.memory_mb}")

        args = [
            "run-enclave",
            "--cpu-count",
            str(self.cpu_count),
            "--memory",
            str(self.memory_mb),
            "--eif-path",
            os.fspath(self.eif_path),
        ]
        if self.cid is not None:
            args += ["--enclave-cid", str(self.cid)]
        if self.debug_mode:
            args.append("--debug-mode")
        return args


@dataclass
class DescribeEnclavesArgs:
    def to_args(self) -> list[str]:
        return ["describe-enclaves"]


@dataclass
class TerminateEnclaveArgs:
    enclave_id: str

    def to_args(self) -> list[str]:
        return ["terminate-enclave", "--enclave-id", self.enclave_id]


@dataclass
class AttachConsoleArgs:
    enclave_id: str

    def to_args(self) -> list[str]:
        return ["console", "--enclave-id", self.enclave_id]


@dataclass
class DescribeEifArgs:
    eif_path: str | os.PathLike

    def to_args(self) -> list[str]:
        return ["describe-eif", "--eif-path", os.fspath(self.eif_path)]


class KnownIssue(enum.Enum):
    """Failures of nitro-cli whose cause is known."""

    IMAGE_TOO_LARGE_FOR_RAM = "image_too_large_for_ram"
    OUT_OF_DISK_SPACE = "out_of_disk_space"

    def helpful_message(self) -> str:
        if self is KnownIssue.IMAGE_TOO_LARGE_FOR_RAM:
            return (
                "This often means that insufficient memory was available to convert the source\n"
                "image to an EIF. Consider shrinking the image, or re-running this command on a\n"
                "machine with more memory available."
            )
        return (
            "Not enough disk space was available to convert the source image to an EIF. Note\n"
            "that enclaver output images contain EIF files, which are potentially very\n"
            "large. If you have been doing a lot of enclaver builds, consider cleaning up\n"
            "old images in your local Docker engine."
        )

    @classmethod
    def detect(cls, line: str) -> KnownIssue | None:
        if r'rootfs/tmp\n  cmd\n  env\nCreate outputs:\n"' in line:
            return cls.IMAGE_TOO_LARGE_FOR_RAM
        if "no space left on device" in line:
            return cls.OUT_OF_DISK_SPACE
        return None


class NitroCLI:
    """Runs nitro-cli commands."""

    def __init__(self, program: str = "nitro-cli") -> None:
        self.program = program

    def _spawn(self, args: _Args) -> subprocess.Popen:
        cmd_args = args.to_args()
        _log.debug("executing nitro-cli with args: %r", cmd_args)
        try:
            return subprocess.Popen(
                [self.program, *cmd_args],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as err:
            raise NitroCLIError(f"failed to execute nitro-cli: {err}") from err

    def run_and_deserialize_output(self, args: _Args) -> Any:
        """Run a command and return its decoded JSON output."""
        proc = self._spawn(args)
        stdout, stderr_bytes = proc.communicate()

        if proc.returncode == 0:
            try:
                return json.loads(stdout)
            except ValueError as err:
                raise NitroCLIError(f"invalid output from nitro-cli: {err}") from err

        _log.error("nitro-cli failed (exit status: %s)", proc.returncode)
        stderr = stderr_bytes.decode("utf-8")
        _log.error("stderr:\n%s", stderr)

        for line in stderr.splitlines():
            if line.startswith(_SUPPORT_TICKET_PREFIX) and line.endswith('"'):
                path = line[len(_SUPPORT_TICKET_PREFIX) : -1]
                with open(path, encoding="utf-8") as handle:
                    contents = handle.read()
                _log.error("%s:\n%s", path, contents)

        raise NitroCLIError("failed to run enclave")

    def run_enclave(self, args: RunEnclaveArgs) -> EnclaveInfo:
        return EnclaveInfo.from_json(self.run_and_deserialize_output(args))

    def describe_enclaves(self) -> list[EnclaveInfo]:
        data = self.run_and_deserialize_output(DescribeEnclavesArgs())
        if not isinstance(data, list):
            raise NitroCLIError("expected a list of enclaves from nitro-cli")
        return [EnclaveInfo.from_json(item) for item in data]

    def terminate_enclave(self, enclave_id: str) -> None:
        data = self.run_and_deserialize_output(TerminateEnclaveArgs(enclave_id))
        if not EnclaveTerminationStatus.from_json(data).terminated:
            raise NitroCLIError("nitro-cli failed to terminate enclave")

    def describe_eif(self, eif_path: str | os.PathLike) -> EIFInfo:
        return EIFInfo.from_json(self.run_and_deserialize_output(DescribeEifArgs(eif_path)))

    def console(self, enclave_id: str) -> IO[bytes]:
        """Attach to an enclave's console and return its output stream."""
        proc = self._spawn(AttachConsoleArgs(enclave_id))
        assert proc.stdout is not None
        return proc.stdout