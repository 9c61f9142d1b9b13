"""Local manifests: installed packages and package publish descriptions."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from .config import armory_home
from .targets import Triple, parse_triple

PACKAGE_MANIFEST_NAME = "armory.yaml"


class ManifestError(Exception):
    """Raised when a manifest is missing or malformed."""


def _read_yaml(path: Path):
    try:
        with open(path) as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ManifestError(f"failed to parse manifest {path}: {e}") from e


@dataclass
class PackageRecord:
    """Record of an installed package."""
    name: str
    version: str


@dataclass
class InstallManifest:
    """Record of installed packages, stored at ``~/.armory/installed.yaml``."""
    packages: list[PackageRecord] = field(default_factory=list)
    path: Optional[Path] = None

    @staticmethod
    def default_path() -> Path:
        return armory_home() / "installed.yaml"

    @classmethod
    def load_or_create(cls, path: Optional[Path] = None) -> "InstallManifest":
        """Load the manifest from disk, or return an empty one if it does not exist."""
        path = Path(path) if path is not None else cls.default_path()
        if not path.exists():
            return cls(path=path)

        data = _read_yaml(path) or {}
        if not isinstance(data, dict):
            raise ManifestError(f"failed to parse manifest {path}: expected a mapping")
        try:
            packages = [PackageRecord(name=str(p["name"]), version=str(p["version"])) for p in data.get("packages", [])]
        except (KeyError, TypeError) as e:
            raise ManifestError(f"failed to parse manifest {path}: invalid package record") from e
        return cls(packages=packages, path=path)

    def get(self, name: str) -> Optional[PackageRecord]:
        for record in self.packages:
            if record.name == name:
                return record
        return None

    def add(self, name: str, version: str) -> None:
        """Record an installed package, replacing any previous version."""
        self.remove(name)
        self.packages.append(PackageRecord(name=name, version=version))

    def remove(self, name: str) -> None:
        """Remove a package. Removing an absent package is not an error."""
        self.packages = [p for p in self.packages if p.name != name]

    def to_dict(self) -> dict:
        records = sorted(self.packages, key=lambda p: p.name)
        return {"packages": [{"name": p.name, "version": p.version} for p in records]}

    def save(self) -> Path:
        path = self.path or self.default_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
        return path


@dataclass
class PackageTarget:
    """The binary published for one triple."""
    triple: Triple
    path: Path


@dataclass
class PackageManifest:
    """Information needed to publish a package, read from ``armory.yaml``."""
    name: str
    version: str
    targets: list[PackageTarget] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict, base_path: Optional[Path] = None) -> "PackageManifest":
        base_path = base_path or Path(".")
        package = data.get("package") or {}
        if not package.get("name") or not package.get("version"):
            raise ManifestError("package manifest requires package.name and package.version")

        targets = []
        for entry in data.get("targets", []) or []:
            if not isinstance(entry, dict) or "triple" not in entry or "path" not in entry:
                raise ManifestError("each target requires 'triple' and 'path'")
            try:
                triple = parse_triple(str(entry["triple"]))
            except ValueError as e:
                raise ManifestError(str(e)) from e
            path = Path(entry["path"])
            if not path.is_absolute():
                path = base_path / path
            targets.append(PackageTarget(triple=triple, path=path))

        return cls(name=str(package["name"]), version=str(package["version"]), targets=targets)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "PackageManifest":
        """Load the manifest, by default from the current working directory."""
        path = Path(path) if path is not None else Path.cwd() / PACKAGE_MANIFEST_NAME
        if not path.exists():
            raise ManifestError(f"no package manifest found at {path}")
        data = _read_yaml(path)
        if not isinstance(data, dict):
            raise ManifestError(f"failed to parse manifest {path}: expected a mapping")
        return cls.from_dict(data, base_path=path.parent)

    def target_for(self, triple: Triple) -> Optional[PackageTarget]:
        for target in self.targets:
            if target.triple == triple:
                return target
        return None
