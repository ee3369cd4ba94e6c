"""Describing image layers as Docker build contexts."""

from __future__ import annotations

import json
import logging
import os
import shutil
import tarfile
import tempfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import BinaryIO

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageRef:
    """A reference to a specific, immutable image."""

    id: str

    def __str__(self) -> str:
        return self.id


@dataclass(frozen=True)
class LocalFile:
    """A file taken from the local filesystem."""

    path: str | os.PathLike


@dataclass(frozen=True)
class ImageFile:
    """A file taken from another image."""

    name: str
    path: str | os.PathLike


FileSource = LocalFile | ImageFile


@dataclass(frozen=True)
class FileBuilder:
    """A file to place at `path` inside the layer."""

    path: str | os.PathLike
    source: FileSource
    chown: str

    def realize(self) -> str:
        """The Dockerfile COPY line that puts this file in place."""
        dst_path = os.fspath(self.path)
        line = f"COPY --chown={self.chown}"
        if isinstance(self.source, LocalFile):
            line += f" files/{dst_path}"
        else:
            line += f" --from={self.source.name} {os.fspath(self.source.path)}"
        return f"{line} {dst_path}\n"


class LayerBuilder:
    """Collects files and an entrypoint to add as a new image layer."""

    def __init__(self) -> None:
        self.files: list[FileBuilder] = []
        self.entrypoint: list[str] | None = None

    def append_file(self, file: FileBuilder) -> LayerBuilder:
        self.files.append(file)
        return self

    def set_entrypoint(self, entrypoint: list[str]) -> LayerBuilder:
        self.entrypoint = list(entrypoint)
        return self

    def dockerfile(self, source_image_name: str) -> str:
        """The Dockerfile that builds this layer on top of the source image."""
        lines = [f"FROM {source_image_name}\n\n"]
        lines.extend(file.realize() for file in self.files)
        if self.entrypoint is not None:
            ep_array = json.dumps(self.entrypoint, separators=(",", ":"), ensure_ascii=False)
            _log.debug("writing ENTRYPOINT: %s", ep_array)
            lines.append(f"ENTRYPOINT {ep_array}\n")
        return "".join(lines)

    def realize(self, source_image_name: str, dst: BinaryIO) -> None:
        """Write a tarred Docker build context for this layer to `dst`."""
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            _log.debug("realizing Docker build env to temp directory: %s", root)
            local_files = root / "files"
            local_files.mkdir()

            for file in self.files:
                _log.debug("realizing file: %r", file)
                if isinstance(file.source, LocalFile):
                    relative = PurePosixPath(os.fspath(file.path)).relative_to("/")
                    target = local_files / relative
                    target.parent.mkdir(parents=True, exist_ok=True)
                    shutil.copy(os.fspath(file.source.path), target)

            (root / "Dockerfile").write_text(self.dockerfile(source_image_name), encoding="utf-8")

            with tarfile.open(fileobj=dst, mode="w|") as tar:
                tar.add(tmp, arcname=".")