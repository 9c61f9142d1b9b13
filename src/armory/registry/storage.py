"""Filesystem-backed artifact store.

Artifacts live under ``<home>/registry/<name>/<triple>/<version>``, each leaf
holding the raw bytes of one published binary. The three-level layout lets
"which versions exist for this platform" be answered by listing a single
directory.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from ..targets import Triple

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """An I/O failure inside the artifact store."""


class ArtifactNotFound(Exception):
    """No artifact exists for the requested key."""


class ArtifactConflict(Exception):
    """A different artifact is already stored under the requested key."""


def _digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _file_digest(path: Path) -> str:
    hasher = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


class ArtifactStore:
    """Stores artifact bytes keyed by ``(name, triple, version)``."""

    def __init__(self, home: Path):
        self.home = Path(home)
        self.root = self.home / "registry"

    def ensure_dirs(self) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"failed to create registry directory {self.root}: {e}") from e

    def _check_root(self) -> None:
        if self.root.exists() and not self.root.is_dir():
            raise StorageError(f"registry root {self.root} is not a directory")

    def artifact_path(self, name: str, triple: Triple, version: str) -> Path:
        return self.root / name / Triple(triple).value / version

    def put(self, name: str, triple: Triple, version: str, content: bytes) -> bool:
        """Store an artifact.

        Returns True when the artifact was written and False when identical
        content was already stored under the key.

        Raises:
            ArtifactConflict: different content is already stored under the key.
            StorageError: the filesystem operation failed.
        """
        path = self.artifact_path(name, triple, version)
        try:
            if path.is_file():
                if _file_digest(path) == _digest(content):
                    logger.info("artifact %s already published with identical content", path)
                    return False
                raise ArtifactConflict(f"{name}@{version} ({triple}) already exists with different content")

            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".upload-")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(content)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, ValueError) as e:
            raise StorageError(f"failed to write artifact to {path}: {e}") from e

        logger.info("published artifact to %s", path)
        return True

    def get(self, name: str, triple: Triple, version: Optional[str] = None) -> tuple[str, bytes]:
        """Return ``(resolved_version, content)``.

        Without a version the latest one is used. Versions are compared as
        plain strings, so "2" sorts after "10".
        """
        if version is None:
            version = max(self.versions(name, triple))

        path = self.artifact_path(name, triple, version)
        try:
            return version, path.read_bytes()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            self._check_root()
            raise ArtifactNotFound(f"{name}@{version} ({triple}) not found") from None
        except (OSError, ValueError) as e:
            raise StorageError(f"failed to read artifact {path}: {e}") from e

    def versions(self, name: str, triple: Triple) -> list[str]:
        """Return every published version, in ascending string order."""
        directory = self.root / name / Triple(triple).value
        try:
            found = [p.name for p in directory.iterdir() if p.is_file() and not p.name.startswith(".")]
        except (FileNotFoundError, NotADirectoryError):
            self._check_root()
            found = []
        except (OSError, ValueError) as e:
            raise StorageError(f"failed to read {directory}: {e}") from e

        if not found:
            raise ArtifactNotFound(f"package {name!r} has no versions for {triple}")
        return sorted(found)

    def package_names(self, triple: Triple) -> list[str]:
        """Return every package with at least one version for ``triple``."""
        try:
            entries = list(self.root.iterdir())
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageError(f"failed to read registry {self.root}: {e}") from e

        names = set()
        for entry in entries:
            if not entry.is_dir():
                continue
            try:
                self.versions(entry.name, triple)
            except ArtifactNotFound:
                continue
            names.add(entry.name)
        return sorted(names)
