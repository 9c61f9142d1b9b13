"""Local cache of downloaded artifacts."""

from pathlib import Path
from typing import Optional

from .config import armory_cache
from .targets import Triple


class ArtifactCache:
    """Downloaded artifacts keyed by ``(name, triple, version)``."""

    def __init__(self, root: Optional[Path] = None):
        self.root = Path(root) if root is not None else armory_cache()

    def _path(self, name: str, triple: Triple, version: str) -> Path:
        return self.root / name / Triple(triple).value / version

    def put(self, name: str, triple: Triple, version: str, data: bytes) -> Path:
        """Store a package in the cache and return the cached path."""
        path = self._path(name, triple, version)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    def get(self, name: str, triple: Triple, version: str) -> Optional[bytes]:
        """Return the cached content, or None if it is not cached."""
        try:
            return self._path(name, triple, version).read_bytes()
        except FileNotFoundError:
            return None
