"""Armory registry - artifact store, wire protocol, server and client."""

from .client import (
    AsyncRegistryClient,
    GeneralRequestError,
    OperationError,
    RegistryClient,
    RegistryError,
    TransportError,
)
from .models import GeneralError, GetError, GetInfoError, ListError, PublishError
from .server import ServerSettings, create_app
from .storage import ArtifactConflict, ArtifactNotFound, ArtifactStore, StorageError

__all__ = [
    "create_app",
    "ServerSettings",
    "ArtifactStore",
    "ArtifactConflict",
    "ArtifactNotFound",
    "StorageError",
    "RegistryClient",
    "AsyncRegistryClient",
    "RegistryError",
    "TransportError",
    "GeneralRequestError",
    "OperationError",
    "GeneralError",
    "PublishError",
    "GetError",
    "GetInfoError",
    "ListError",
]
