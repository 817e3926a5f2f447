"""
Tests for RegistrySyncWorkflow.

Tests cover:
1. generate — self-publish into a local registry file
2. add_explicit — operator-authored remote create, dry run
3. add_from_remote — fetch + selective override, display_name asymmetry
"""

from unittest.mock import Mock

import pytest

from node_registry.errors import (
    ConflictError,
    DuplicateIdentityError,
    InvalidMetadataError,
    MalformedRegistryFileError,
    NodeNotFoundError,
    RecordValidationError,
    RegistryEnvironmentError,
    RemoteError,
)
from node_registry.local_registry import LocalRegistryFile
from node_registry.models import LocalNodeStatus, NodeRecordBuilder
from node_registry.remote_client import InMemoryRegistryClient
from node_registry.workflows import RegistrySyncWorkflow


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def key_file(tmp_path):
    path = tmp_path / "node.pub"
    path.write_text("0279be667ef9dcbbac55a06295ce870b\n")
    return str(path)


@pytest.fixture
def other_key_file(tmp_path):
    path = tmp_path / "other.pub"
    path.write_text("03aaaa\n")
    return str(path)


@pytest.fixture
def registry_path(tmp_path):
    return str(tmp_path / "nodes.yaml")


@pytest.fixture
def status():
    return LocalNodeStatus(
        node_id="node-1",
        advertised_endpoints=["tcps://node-1:8044"],
    )


@pytest.fixture
def remote_record():
    return (
        NodeRecordBuilder()
        .with_identity("node-1")
        .with_endpoints(["tcps://node-1:8044", "tcp://node-1:8045"])
        .with_display_name("Remote Name")
        .with_keys(["02remote"])
        .with_metadata("org", "acme")
        .build()
    )


# =============================================================================
# Generate
# =============================================================================

class TestGenerate:
    """Tests for publishing the local node into a registry file."""

    def test_empty_file_gets_one_record(self, status, key_file, registry_path):
        workflow = RegistrySyncWorkflow(InMemoryRegistryClient(status=status))

        record = workflow.generate([key_file], path=registry_path)

        registry = LocalRegistryFile.load(registry_path)
        assert registry.identities() == ["node-1"]
        stored = registry.get("node-1")
        assert stored == record
        assert stored.display_name == "node-1"
        assert stored.endpoints == ("tcps://node-1:8044",)
        assert stored.keys == ("0279be667ef9dcbbac55a06295ce870b",)
        assert stored.metadata == {}

    def test_uses_status_display_name_and_metadata(self, key_file, registry_path):
        status = LocalNodeStatus(
            node_id="node-1",
            display_name="Node One",
            advertised_endpoints=["tcps://node-1:8044"],
        )
        workflow = RegistrySyncWorkflow(InMemoryRegistryClient(status=status))

        record = workflow.generate(
            [key_file], metadata=["org=acme", "region=eu"], path=registry_path
        )

        assert record.display_name == "Node One"
        assert record.metadata == {"org": "acme", "region": "eu"}

    def test_second_run_without_force_fails_and_keeps_file(
        self, status, key_file, registry_path
    ):
        workflow = RegistrySyncWorkflow(InMemoryRegistryClient(status=status))
        workflow.generate([key_file], path=registry_path)
        with open(registry_path) as f:
            after_first = f.read()

        with pytest.raises(DuplicateIdentityError):
            workflow.generate([key_file], metadata=["org=acme"], path=registry_path)

        with open(registry_path) as f:
            assert f.read() == after_first

    def test_duplicate_is_environment_error(self, status, key_file, registry_path):
        workflow = RegistrySyncWorkflow(InMemoryRegistryClient(status=status))
        workflow.generate([key_file], path=registry_path)

        with pytest.raises(RegistryEnvironmentError):
            workflow.generate([key_file], path=registry_path)

    def test_force_replaces_and_moves_to_end(self, status, key_file, registry_path):
        other = (
            NodeRecordBuilder()
            .with_identity("node-0")
            .with_endpoints(["tcps://node-0:8044"])
            .with_keys(["02zero"])
            .build()
        )
        workflow = RegistrySyncWorkflow(InMemoryRegistryClient(status=status))
        workflow.generate([key_file], path=registry_path)
        registry = LocalRegistryFile.load(registry_path)
        registry.upsert(other)
        registry.save(registry_path)

        workflow.generate([key_file], metadata=["org=acme"], path=registry_path, force=True)

        registry = LocalRegistryFile.load(registry_path)
        assert registry.identities() == ["node-0", "node-1"]
        assert registry.get("node-1").metadata == {"org": "acme"}

    def test_bad_metadata_writes_nothing(self, status, key_file, registry_path):
        workflow = RegistrySyncWorkflow(InMemoryRegistryClient(status=status))

        with pytest.raises(InvalidMetadataError):
            workflow.generate([key_file], metadata=["org=acme", "=broken"], path=registry_path)

        assert len(LocalRegistryFile.load(registry_path)) == 0

    def test_requires_key_files(self, status, registry_path):
        workflow = RegistrySyncWorkflow(InMemoryRegistryClient(status=status))
        with pytest.raises(RecordValidationError, match="key files"):
            workflow.generate([], path=registry_path)

    def test_status_without_endpoints_fails(self, key_file, registry_path):
        status = LocalNodeStatus(node_id="node-1", advertised_endpoints=[])
        workflow = RegistrySyncWorkflow(InMemoryRegistryClient(status=status))
        with pytest.raises(RecordValidationError):
            workflow.generate([key_file], path=registry_path)

    def test_status_failure_aborts(self, key_file, registry_path):
        workflow = RegistrySyncWorkflow(InMemoryRegistryClient())
        with pytest.raises(RemoteError):
            workflow.generate([key_file], path=registry_path)

    def test_malformed_file_aborts_before_status(self, tmp_path, key_file):
        path = tmp_path / "nodes.yaml"
        path.write_text("not: [a, sequence\n")
        client = Mock(wraps=InMemoryRegistryClient())
        workflow = RegistrySyncWorkflow(client)

        with pytest.raises(MalformedRegistryFileError):
            workflow.generate([key_file], path=str(path))

        client.get_node_status.assert_not_called()

    def test_missing_key_file_fails(self, status, tmp_path, registry_path):
        workflow = RegistrySyncWorkflow(InMemoryRegistryClient(status=status))
        with pytest.raises(RegistryEnvironmentError, match="key file"):
            workflow.generate([str(tmp_path / "absent.pub")], path=registry_path)

    def test_binary_key_file_fails_and_writes_nothing(self, status, tmp_path, registry_path):
        key_path = tmp_path / "binary.pub"
        key_path.write_bytes(b"\xff\xfe\x00bad")
        workflow = RegistrySyncWorkflow(InMemoryRegistryClient(status=status))

        with pytest.raises(RecordValidationError, match="not valid UTF-8"):
            workflow.generate([str(key_path)], path=registry_path)
        assert not (tmp_path / "nodes.yaml").exists()

    def test_custom_key_reader(self, status, registry_path):
        workflow = RegistrySyncWorkflow(
            InMemoryRegistryClient(status=status),
            key_reader=lambda key_file: f"key-of-{key_file}",
        )
        record = workflow.generate(["a.pub", "b.pub"], path=registry_path)
        assert record.keys == ("key-of-a.pub", "key-of-b.pub")


# =============================================================================
# Add explicit
# =============================================================================

class TestAddExplicit:
    """Tests for creating a remote node from supplied fields."""

    def test_adds_record(self, key_file):
        client = InMemoryRegistryClient()
        workflow = RegistrySyncWorkflow(client)

        record = workflow.add_explicit(
            "node-2",
            endpoints=["tcps://node-2:8044"],
            key_files=[key_file],
            metadata=["org=acme"],
        )

        assert client.get_node("node-2") == record
        assert record.display_name == "node-2"
        assert record.metadata == {"org": "acme"}

    def test_dry_run_never_calls_add(self, key_file):
        client = Mock(wraps=InMemoryRegistryClient())
        workflow = RegistrySyncWorkflow(client)

        record = workflow.add_explicit(
            "node-2",
            endpoints=["tcps://node-2:8044"],
            key_files=[key_file],
            display_name="Node Two",
            dry_run=True,
        )

        client.add_node.assert_not_called()
        assert record.identity == "node-2"
        assert record.display_name == "Node Two"

    def test_missing_endpoints_fails_before_remote(self, key_file):
        client = Mock(wraps=InMemoryRegistryClient())
        workflow = RegistrySyncWorkflow(client)

        with pytest.raises(RecordValidationError):
            workflow.add_explicit("node-2", key_files=[key_file])

        client.add_node.assert_not_called()

    def test_missing_keys_fails(self):
        workflow = RegistrySyncWorkflow(InMemoryRegistryClient())
        with pytest.raises(RecordValidationError):
            workflow.add_explicit("node-2", endpoints=["tcps://node-2:8044"])

    def test_conflict_surfaces(self, key_file, remote_record):
        workflow = RegistrySyncWorkflow(InMemoryRegistryClient(nodes=[remote_record]))
        with pytest.raises(ConflictError):
            workflow.add_explicit(
                "node-1", endpoints=["tcps://node-1:8044"], key_files=[key_file]
            )

    def test_add_dispatches_to_explicit(self, key_file):
        client = InMemoryRegistryClient()
        workflow = RegistrySyncWorkflow(client)

        workflow.add("node-2", endpoints=["tcps://node-2:8044"], key_files=[key_file])

        assert client.calls == [("add", "node-2")]


# =============================================================================
# Add from remote
# =============================================================================

class TestAddFromRemote:
    """Tests for fetch + selective override."""

    def test_no_overrides_keeps_fetched_fields_except_display_name(self, remote_record):
        client = InMemoryRegistryClient(nodes=[remote_record])
        workflow = RegistrySyncWorkflow(client)

        record = workflow.add_from_remote("node-1")

        assert record.endpoints == remote_record.endpoints
        assert record.keys == remote_record.keys
        assert record.metadata == remote_record.metadata
        # display name is never inherited from the fetched record
        assert record.display_name == "node-1"
        assert record == remote_record.model_copy(update={"display_name": "node-1"})
        assert client.get_node("node-1") == record
        assert client.calls == [("update", "node-1")]

    def test_supplied_display_name_wins(self, remote_record):
        workflow = RegistrySyncWorkflow(InMemoryRegistryClient(nodes=[remote_record]))
        record = workflow.add_from_remote("node-1", display_name="New Name")
        assert record.display_name == "New Name"

    def test_endpoints_replaced_wholesale(self, remote_record):
        workflow = RegistrySyncWorkflow(InMemoryRegistryClient(nodes=[remote_record]))

        record = workflow.add_from_remote("node-1", endpoints=["tcps://moved:9000"])

        assert record.endpoints == ("tcps://moved:9000",)
        assert record.keys == remote_record.keys
        assert record.metadata == {"org": "acme"}

    def test_metadata_replaced_wholesale(self, remote_record):
        workflow = RegistrySyncWorkflow(InMemoryRegistryClient(nodes=[remote_record]))

        record = workflow.add_from_remote("node-1", metadata=["region=eu"])

        assert record.metadata == {"region": "eu"}

    def test_keys_replaced_wholesale(self, remote_record, other_key_file):
        workflow = RegistrySyncWorkflow(InMemoryRegistryClient(nodes=[remote_record]))

        record = workflow.add_from_remote("node-1", key_files=[other_key_file])

        assert record.keys == ("03aaaa",)
        assert record.endpoints == remote_record.endpoints

    def test_absent_remote_is_not_found(self):
        client = Mock(wraps=InMemoryRegistryClient())
        workflow = RegistrySyncWorkflow(client)

        with pytest.raises(NodeNotFoundError):
            workflow.add_from_remote("node-9")

        client.update_node.assert_not_called()

    def test_dry_run_never_calls_update(self, remote_record):
        client = Mock(wraps=InMemoryRegistryClient(nodes=[remote_record]))
        workflow = RegistrySyncWorkflow(client)

        record = workflow.add_from_remote("node-1", metadata=["region=eu"], dry_run=True)

        client.update_node.assert_not_called()
        assert record.metadata == {"region": "eu"}

    def test_bad_metadata_fails_before_fetch(self, remote_record):
        client = Mock(wraps=InMemoryRegistryClient(nodes=[remote_record]))
        workflow = RegistrySyncWorkflow(client)

        with pytest.raises(InvalidMetadataError):
            workflow.add_from_remote("node-1", metadata=["region"])

        client.get_node.assert_not_called()

    def test_add_dispatches_to_from_remote(self, remote_record):
        client = InMemoryRegistryClient(nodes=[remote_record])
        workflow = RegistrySyncWorkflow(client)

        workflow.add("node-1", from_remote=True)

        assert client.calls == [("update", "node-1")]
