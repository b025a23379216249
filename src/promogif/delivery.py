"""Artifact naming and delivery."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from .io import atomic_write

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def slugify(name: str) -> str:
    """Lowercase ``name`` and replace each whitespace run with a hyphen."""
    return _WHITESPACE.sub("-", name.lower())


def build_artifact_filename(
    name: str, descriptor: str, width: int, height: int, ext: str = "gif"
) -> str:
    """Filename of the form ``<slug>-<descriptor>-<width>x<height>.<ext>``."""
    return f"{slugify(name)}-{descriptor}-{width}x{height}.{ext}"


@dataclass(frozen=True)
class Artifact:
    filename: str
    data: bytes

    @property
    def size_mb(self) -> float:
        return len(self.data) / (1024 * 1024)


@runtime_checkable
class ArtifactSink(Protocol):
    """Receives the finished artifact exactly once per successful run."""

    def deliver(self, artifact: Artifact) -> None:
        ...


class DirectorySink:
    """Saves artifacts into a directory, overwriting same-named files atomically."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.delivered: list[Path] = []

    def deliver(self, artifact: Artifact) -> None:
        path = self.directory / artifact.filename
        with atomic_write(path, "wb") as f:
            f.write(artifact.data)
        self.delivered.append(path)
        logger.info(f"💾 Saved {path} ({artifact.size_mb:.2f} MB)")


class MemorySink:
    """Keeps delivered artifacts in memory."""

    def __init__(self) -> None:
        self.artifacts: list[Artifact] = []

    def deliver(self, artifact: Artifact) -> None:
        self.artifacts.append(artifact)
