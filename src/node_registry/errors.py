"""
Error taxonomy for node registry operations.

Every failure a workflow can raise derives from RegistryCliError, so the CLI
can report any of them uniformly and exit non-zero.

Hierarchy:
    RegistryCliError
    ├── RecordValidationError      — record fails its invariants
    │   └── InvalidMetadataError   — malformed key=value token
    ├── MalformedRegistryFileError — registry file present but unreadable as nodes
    ├── RegistryEnvironmentError   — I/O failure or unforced identity collision
    │   └── DuplicateIdentityError
    ├── RemoteError                — registry service rejected a request
    │   └── ConflictError
    ├── NodeNotFoundError          — required remote identity absent
    ├── BuilderConsumedError       — builder reused after build()
    └── ConfigurationError         — missing or empty required setting
"""


class RegistryCliError(Exception):
    """Base class for all node registry errors."""


# =============================================================================
# Validation
# =============================================================================

class RecordValidationError(RegistryCliError):
    """A node record does not satisfy its invariants."""


class InvalidMetadataError(RecordValidationError):
    """A metadata token is not a well-formed key=value pair."""


class BuilderConsumedError(RegistryCliError):
    """A NodeRecordBuilder was used again after build()."""


class ConfigurationError(RegistryCliError, ValueError):
    """A required setting such as the registry URL is missing or empty."""


# =============================================================================
# Local registry file
# =============================================================================

class MalformedRegistryFileError(RegistryCliError):
    """The registry file exists but is not a valid YAML sequence of nodes."""


class RegistryEnvironmentError(RegistryCliError):
    """The local environment prevents the operation (I/O, identity collision)."""


class DuplicateIdentityError(RegistryEnvironmentError):
    """A node with the same identity is already present and force was not given."""

    def __init__(self, identity: str):
        self.identity = identity
        super().__init__(
            f"Node '{identity}' already exists; "
            "must use '--force' to overwrite an existing node"
        )


# =============================================================================
# Remote registry
# =============================================================================

class RemoteError(RegistryCliError):
    """The registry service failed or rejected a request."""

    def __init__(self, message: str, status_code: int = None):
        self.status_code = status_code
        super().__init__(message)


class ConflictError(RemoteError):
    """The registry service already holds a node with this identity."""


class NodeNotFoundError(RegistryCliError):
    """A node required by the operation does not exist in the remote registry."""

    def __init__(self, identity: str):
        self.identity = identity
        super().__init__(f"Unable to retrieve node '{identity}' from remote")
