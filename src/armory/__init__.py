"""Armory - a minimal personal package registry and client."""

__version__ = "0.1.0"

from .targets import Triple, UnsupportedPlatformError, current_triple, parse_triple
from .registry import (
    ArtifactConflict,
    ArtifactNotFound,
    ArtifactStore,
    AsyncRegistryClient,
    GeneralRequestError,
    OperationError,
    RegistryClient,
    RegistryError,
    ServerSettings,
    StorageError,
    TransportError,
    create_app,
)
from .manifest import InstallManifest, ManifestError, PackageManifest
from .cache import ArtifactCache
from .config import ClientConfig

__all__ = [
    "__version__",
    "Triple",
    "UnsupportedPlatformError",
    "current_triple",
    "parse_triple",
    "ArtifactStore",
    "ArtifactConflict",
    "ArtifactNotFound",
    "StorageError",
    "ServerSettings",
    "create_app",
    "RegistryClient",
    "AsyncRegistryClient",
    "RegistryError",
    "TransportError",
    "GeneralRequestError",
    "OperationError",
    "InstallManifest",
    "PackageManifest",
    "ManifestError",
    "ArtifactCache",
    "ClientConfig",
]
