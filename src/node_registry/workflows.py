"""
Registry sync workflows.

Three orchestrations over the registry capabilities:
- generate         — a node publishes its own record into a local registry file
- add_explicit     — an operator creates a remote record from supplied fields
- add_from_remote  — an operator rewrites a remote record, overriding selected fields

Each run moves through Loading → Validating → Persisting/Calling-remote and
stops at the first error. Nothing is written or sent after a failed stage;
nothing already committed is rolled back.
"""

import logging
from typing import Callable, Dict, Optional, Sequence

from .errors import NodeNotFoundError, RecordValidationError
from .keys import read_key_file, read_key_files
from .local_registry import DEFAULT_REGISTRY_FILE, LocalRegistryFile
from .metadata import parse_metadata
from .models import NodeRecord, NodeRecordBuilder
from .remote_client import RemoteRegistryClient

logger = logging.getLogger(__name__)


class RegistrySyncWorkflow:
    """
    Runs the registry maintenance workflows against one remote client.

    Args:
        client: Registry service capability.
        key_reader: Callable turning a key file path into a key.
    """

    def __init__(
        self,
        client: RemoteRegistryClient,
        key_reader: Callable[[str], str] = read_key_file,
    ):
        self.client = client
        self.key_reader = key_reader

    # =========================================================================
    # Generate (self-publish to local file)
    # =========================================================================

    def generate(
        self,
        key_files: Sequence[str],
        metadata: Optional[Sequence[str]] = None,
        path: str = DEFAULT_REGISTRY_FILE,
        force: bool = False,
    ) -> NodeRecord:
        """
        Add the serving node's own record to a local registry file.

        Args:
            key_files: Paths of key files for the node (at least one).
            metadata: Raw ``key=value`` metadata tokens.
            path: Registry file to merge into; created if absent.
            force: Replace an existing record with the same identity.

        Returns:
            The record written to the file.

        Raises:
            RecordValidationError: Missing keys, bad metadata or invalid status fields.
            MalformedRegistryFileError: The existing file cannot be parsed.
            DuplicateIdentityError: The identity exists and force is False.
            RemoteError: The status request failed.
        """
        logger.debug(f"generate: loading {path}")
        registry = LocalRegistryFile.load(path)

        status = self.client.get_node_status()

        logger.debug(f"generate: validating node '{status.node_id}'")
        if not key_files:
            raise RecordValidationError("One or more key files must be specified")
        keys = read_key_files(key_files, self.key_reader)
        node_metadata = parse_metadata(metadata)

        record = (
            NodeRecordBuilder()
            .with_identity(status.node_id)
            .with_endpoints(status.advertised_endpoints)
            .with_display_name(status.display_name)
            .with_keys(keys)
            .with_metadata_map(node_metadata)
            .build()
        )

        registry.upsert(record, force=force)

        logger.debug(f"generate: persisting {len(registry)} nodes to {path}")
        registry.save(path)

        logger.info(f"Added node '{record.identity}' to '{path}'")
        return record

    # =========================================================================
    # Add (remote registry)
    # =========================================================================

    def add(
        self,
        identity: str,
        endpoints: Optional[Sequence[str]] = None,
        key_files: Optional[Sequence[str]] = None,
        display_name: Optional[str] = None,
        metadata: Optional[Sequence[str]] = None,
        dry_run: bool = False,
        from_remote: bool = False,
    ) -> NodeRecord:
        """Run add_from_remote when from_remote is set, add_explicit otherwise."""
        run = self.add_from_remote if from_remote else self.add_explicit
        return run(
            identity,
            endpoints=endpoints,
            key_files=key_files,
            display_name=display_name,
            metadata=metadata,
            dry_run=dry_run,
        )

    def add_explicit(
        self,
        identity: str,
        endpoints: Optional[Sequence[str]] = None,
        key_files: Optional[Sequence[str]] = None,
        display_name: Optional[str] = None,
        metadata: Optional[Sequence[str]] = None,
        dry_run: bool = False,
    ) -> NodeRecord:
        """
        Create a node in the remote registry from operator-supplied fields.

        Args:
            identity: Node identity.
            endpoints: Node endpoints (at least one).
            key_files: Paths of key files (at least one).
            display_name: Display name; defaults to the identity.
            metadata: Raw ``key=value`` metadata tokens.
            dry_run: Validate and report without calling the registry.

        Returns:
            The record that was (or, on a dry run, would have been) added.

        Raises:
            RecordValidationError: The supplied fields do not form a valid record.
            ConflictError: The identity already exists remotely.
            RemoteError: The registry rejected the request.
        """
        node_metadata = parse_metadata(metadata)
        keys = read_key_files(key_files or [], self.key_reader)

        record = (
            NodeRecordBuilder()
            .with_identity(identity)
            .with_endpoints(endpoints or [])
            .with_display_name(display_name)
            .with_keys(keys)
            .with_metadata_map(node_metadata)
            .build()
        )

        if dry_run:
            logger.info(f"Dry run: node '{identity}' validated, not added")
        else:
            self.client.add_node(record)
            logger.info(f"Added node '{identity}' to remote registry")

        logger.debug(f"add: done\n{record.describe()}")
        return record

    def add_from_remote(
        self,
        identity: str,
        endpoints: Optional[Sequence[str]] = None,
        key_files: Optional[Sequence[str]] = None,
        display_name: Optional[str] = None,
        metadata: Optional[Sequence[str]] = None,
        dry_run: bool = False,
    ) -> NodeRecord:
        """
        Rewrite an existing remote node, overriding only the supplied fields.

        Endpoints, keys and metadata replace the fetched values wholesale when
        any value is given for them, and are kept from the fetched record
        otherwise. The display name is always the supplied value (or the
        identity), never the fetched one.

        Args:
            identity: Identity of the node to fetch and update.
            endpoints: Replacement endpoints.
            key_files: Paths of key files whose keys replace the fetched keys.
            display_name: Display name; defaults to the identity.
            metadata: Raw ``key=value`` tokens replacing the fetched metadata.
            dry_run: Validate and report without calling update.

        Returns:
            The record that was (or, on a dry run, would have been) written.

        Raises:
            NodeNotFoundError: The identity is not in the remote registry.
            RecordValidationError: The merged record is invalid.
            RemoteError: The registry rejected the request.
        """
        node_metadata = parse_metadata(metadata)
        keys = read_key_files(key_files or [], self.key_reader)

        logger.debug(f"add: fetching node '{identity}' from remote")
        existing = self.client.get_node(identity)
        if existing is None:
            raise NodeNotFoundError(identity)

        record = self._overlay(existing, endpoints, keys, display_name, node_metadata)

        if dry_run:
            logger.info(f"Dry run: node '{identity}' validated, not updated")
        else:
            self.client.update_node(record)
            logger.info(f"Updated node '{identity}' in remote registry")

        logger.debug(f"add: done\n{record.describe()}")
        return record

    @staticmethod
    def _overlay(
        existing: NodeRecord,
        endpoints: Optional[Sequence[str]],
        keys: Sequence[str],
        display_name: Optional[str],
        metadata: Dict[str, str],
    ) -> NodeRecord:
        # display_name does not fall back to existing.display_name; only the
        # other three fields inherit from the fetched record.
        return (
            NodeRecordBuilder()
            .with_identity(existing.identity)
            .with_endpoints(endpoints if endpoints else existing.endpoints)
            .with_display_name(display_name)
            .with_keys(keys if keys else existing.keys)
            .with_metadata_map(metadata if metadata else existing.metadata)
            .build()
        )
