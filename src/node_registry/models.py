"""
Pydantic models for node registry records.

This module provides:
- NodeRecord — immutable registry entry for one participant node
- NodeRecordBuilder — single-use validating accumulator for NodeRecord
- LocalNodeStatus — live status reported by a running node
- ServerError — structured error body returned by the registry service
"""

from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import (
    BaseModel,
    Field,
    ValidationError,
    field_serializer,
    field_validator,
    model_validator,
)

from .errors import BuilderConsumedError, RecordValidationError


# =============================================================================
# Node Record
# =============================================================================

class NodeRecord(BaseModel):
    """
    A participant node as stored in a registry.

    Records are frozen: a change is made by building a replacement record
    and swapping it in by identity.

    Example:
        {
            "identity": "node-1",
            "endpoints": ["tcps://node-1:8044"],
            "display_name": "Node 1",
            "keys": ["0279be667ef9dcbb..."],
            "metadata": {"organization": "acme"}
        }
    """

    model_config = {"frozen": True}

    identity: str = Field(..., min_length=1, description="Unique node identity")
    endpoints: Tuple[str, ...] = Field(..., min_length=1, description="Network endpoints")
    display_name: str = Field(..., description="Human-readable name")
    keys: Tuple[str, ...] = Field(..., min_length=1, description="Public keys of the node")
    metadata: Dict[str, str] = Field(
        default_factory=dict, validate_default=True, description="Free-form metadata"
    )

    @model_validator(mode="before")
    @classmethod
    def default_display_name(cls, data: Any) -> Any:
        """Fall back to the identity when no display name is given."""
        if isinstance(data, dict) and not data.get("display_name"):
            data = dict(data)
            data["display_name"] = data.get("identity")
        return data

    @field_validator("metadata")
    @classmethod
    def validate_metadata(cls, v: Dict[str, str]) -> Mapping[str, str]:
        """Metadata keys and values must be non-empty; the stored mapping is read-only."""
        for key, value in v.items():
            if not key:
                raise ValueError("Metadata keys must not be empty")
            if not value:
                raise ValueError(f"Metadata key '{key}' has an empty value")
        return MappingProxyType(dict(v))

    @field_serializer("metadata")
    def serialize_metadata(self, v: Mapping[str, str]) -> Dict[str, str]:
        return dict(v)

    def to_document(self) -> Dict[str, Any]:
        """Plain-data form used for YAML files and JSON request bodies."""
        return self.model_dump(mode="json")

    def describe(self) -> str:
        """Render the record as the multi-line block shown to operators."""
        lines = [f"identity: {self.identity}", "endpoints:"]
        lines.extend(f"  - {endpoint}" for endpoint in self.endpoints)
        lines.append(f"display name: {self.display_name}")
        lines.append("keys:")
        lines.extend(f"  - {key}" for key in self.keys)
        lines.append("metadata:")
        lines.extend(f"  {key}: {value}" for key, value in self.metadata.items())
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.describe()


class NodeRecordBuilder:
    """
    Accumulates node fields and finalizes them once into a NodeRecord.

    Usage:
        record = (
            NodeRecordBuilder()
            .with_identity("node-1")
            .with_endpoints(["tcps://node-1:8044"])
            .with_keys([public_key])
            .with_metadata("organization", "acme")
            .build()
        )

    The builder is single-use; calling any method after a successful
    build() raises BuilderConsumedError.
    """

    def __init__(self):
        self._identity: Optional[str] = None
        self._endpoints: List[str] = []
        self._display_name: Optional[str] = None
        self._keys: List[str] = []
        self._metadata: Dict[str, str] = {}
        self._consumed = False

    def _check_open(self) -> None:
        if self._consumed:
            raise BuilderConsumedError("NodeRecordBuilder cannot be reused after build()")

    def with_identity(self, identity: str) -> "NodeRecordBuilder":
        self._check_open()
        self._identity = identity
        return self

    def with_endpoints(self, endpoints: Iterable[str]) -> "NodeRecordBuilder":
        self._check_open()
        self._endpoints = list(endpoints)
        return self

    def with_display_name(self, display_name: Optional[str]) -> "NodeRecordBuilder":
        self._check_open()
        self._display_name = display_name
        return self

    def with_keys(self, keys: Iterable[str]) -> "NodeRecordBuilder":
        self._check_open()
        self._keys = list(keys)
        return self

    def with_metadata(self, key: str, value: str) -> "NodeRecordBuilder":
        """Set one metadata entry; a repeated key overwrites the earlier value."""
        self._check_open()
        self._metadata[key] = value
        return self

    def with_metadata_map(self, metadata: Mapping[str, str]) -> "NodeRecordBuilder":
        self._check_open()
        for key, value in metadata.items():
            self._metadata[key] = value
        return self

    def build(self) -> NodeRecord:
        """
        Validate the accumulated fields and produce an immutable NodeRecord.

        Returns:
            The finalized NodeRecord.

        Raises:
            RecordValidationError: If identity, endpoints or keys are missing,
                or metadata contains empty keys or values.
            BuilderConsumedError: If build() already succeeded on this builder.
        """
        self._check_open()

        if not self._identity:
            raise RecordValidationError("Identity must be specified")
        if not self._endpoints:
            raise RecordValidationError(
                f"Node '{self._identity}': one or more endpoints must be specified"
            )
        if not self._keys:
            raise RecordValidationError(
                f"Node '{self._identity}': one or more keys must be specified"
            )

        try:
            record = NodeRecord(
                identity=self._identity,
                endpoints=tuple(self._endpoints),
                display_name=self._display_name or self._identity,
                keys=tuple(self._keys),
                metadata=dict(self._metadata),
            )
        except ValidationError as e:
            raise RecordValidationError(f"Invalid node '{self._identity}': {e}") from e

        self._consumed = True
        return record


# =============================================================================
# Remote payloads
# =============================================================================

class LocalNodeStatus(BaseModel):
    """Live status of the node answering a status request."""
    node_id: str = Field(..., min_length=1, description="Identity of the node")
    display_name: Optional[str] = Field(None, description="Configured display name")
    advertised_endpoints: List[str] = Field(
        default_factory=list,
        description="Endpoints other nodes should use to connect"
    )
    network_endpoints: List[str] = Field(
        default_factory=list,
        description="Endpoints the node listens on"
    )
    service_endpoint: Optional[str] = Field(None, description="Service endpoint")
    version: Optional[str] = Field(None, description="Node software version")


class ServerError(BaseModel):
    """Error body returned by the registry service on a failed request."""
    message: str
