"""
Node Registry module.

Maintains participant node records in a local YAML registry file and in a
remote registry service.
"""

from .errors import (
    RegistryCliError,
    RecordValidationError,
    InvalidMetadataError,
    BuilderConsumedError,
    ConfigurationError,
    MalformedRegistryFileError,
    RegistryEnvironmentError,
    DuplicateIdentityError,
    RemoteError,
    ConflictError,
    NodeNotFoundError,
)
from .metadata import parse_metadata, parse_metadata_pair
from .models import NodeRecord, NodeRecordBuilder, LocalNodeStatus
from .local_registry import LocalRegistryFile
from .remote_client import RemoteRegistryClient, RestRegistryClient, InMemoryRegistryClient
from .workflows import RegistrySyncWorkflow

__all__ = [
    "RegistryCliError",
    "RecordValidationError",
    "InvalidMetadataError",
    "BuilderConsumedError",
    "ConfigurationError",
    "MalformedRegistryFileError",
    "RegistryEnvironmentError",
    "DuplicateIdentityError",
    "RemoteError",
    "ConflictError",
    "NodeNotFoundError",
    "parse_metadata",
    "parse_metadata_pair",
    "NodeRecord",
    "NodeRecordBuilder",
    "LocalNodeStatus",
    "LocalRegistryFile",
    "RemoteRegistryClient",
    "RestRegistryClient",
    "InMemoryRegistryClient",
    "RegistrySyncWorkflow",
]
