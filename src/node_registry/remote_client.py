"""
Remote registry clients.

RemoteRegistryClient is the capability the workflows consume: fetch the
local node's live status, and get/add/update registry nodes by identity.

Implementations:
- RestRegistryClient — talks to a registry REST API with requests
- InMemoryRegistryClient — dict-backed stand-in with the same semantics

REST endpoints:
    GET  {url}/status                     → LocalNodeStatus
    GET  {url}/registry/nodes/{identity}  → NodeRecord (404 = absent)
    POST {url}/registry/nodes             → create (409 = identity exists)
    PUT  {url}/registry/nodes/{identity}  → replace

No timeouts and no retries: a failed call surfaces immediately.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional
from urllib.parse import quote

import requests
from pydantic import ValidationError

from .errors import ConfigurationError, ConflictError, RemoteError
from .models import LocalNodeStatus, NodeRecord, ServerError

logger = logging.getLogger(__name__)


class RemoteRegistryClient(ABC):
    """Stateless channel to a registry service keyed by node identity."""

    @abstractmethod
    def get_node_status(self) -> LocalNodeStatus:
        """Return the live status of the node serving the registry API."""

    @abstractmethod
    def get_node(self, identity: str) -> Optional[NodeRecord]:
        """Return the node with this identity, or None if it is not registered."""

    @abstractmethod
    def add_node(self, record: NodeRecord) -> None:
        """
        Create a node.

        Raises:
            ConflictError: If a node with the same identity exists.
            RemoteError: If the service rejects the request.
        """

    @abstractmethod
    def update_node(self, record: NodeRecord) -> None:
        """
        Replace the node with the same identity.

        Raises:
            RemoteError: If the identity is unknown or the payload is rejected.
        """


# =============================================================================
# REST implementation
# =============================================================================

class RestRegistryClient(RemoteRegistryClient):
    """
    RemoteRegistryClient backed by the registry REST API.

    Usage:
        client = RestRegistryClient("http://127.0.0.1:8080", auth=token)
        client.add_node(record)

    When auth is given, every request carries ``Authorization: Bearer <auth>``.
    """

    def __init__(self, url: str, auth: Optional[str] = None):
        if not url:
            raise ConfigurationError("Registry URL must be specified")
        self.url = url.rstrip("/")
        self.auth = auth
        logger.debug(
            f"RestRegistryClient initialized: url={self.url}, "
            f"auth={'configured' if auth else 'none'}"
        )

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.auth:
            headers["Authorization"] = f"Bearer {self.auth}"
        return headers

    def _node_url(self, identity: str) -> str:
        return f"{self.url}/registry/nodes/{quote(identity, safe='')}"

    @staticmethod
    def _error_from_response(response, operation: str, error_cls=RemoteError) -> RemoteError:
        """
        Translate a non-success response into a RemoteError.

        The body is parsed as a ServerError; if that fails the error names
        the raw status code instead.
        """
        status = response.status_code
        try:
            message = ServerError.model_validate(response.json()).message
        except (ValueError, ValidationError):
            return error_cls(
                f"Registry {operation} request failed with status code '{status}', "
                "but error response was not valid",
                status_code=status,
            )
        return error_cls(f"Failed to {operation}: {message}", status_code=status)

    def get_node_status(self) -> LocalNodeStatus:
        try:
            response = requests.get(f"{self.url}/status", headers=self._headers())
        except requests.RequestException as e:
            raise RemoteError(f"Failed to get node status: {e}") from e

        if not response.ok:
            raise self._error_from_response(response, "get node status")

        try:
            return LocalNodeStatus.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise RemoteError(
                "Status request was successful, but received an invalid response"
            ) from e

    def get_node(self, identity: str) -> Optional[NodeRecord]:
        try:
            response = requests.get(
                self._node_url(identity), headers=self._headers()
            )
        except requests.RequestException as e:
            raise RemoteError(f"Failed to fetch node: {e}") from e

        if response.status_code == 404:
            logger.debug(f"Node '{identity}' not found in remote registry")
            return None
        if not response.ok:
            raise self._error_from_response(response, "fetch node")

        try:
            return NodeRecord.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise RemoteError(
                "Request was successful, but received an invalid response"
            ) from e

    def add_node(self, record: NodeRecord) -> None:
        try:
            response = requests.post(
                f"{self.url}/registry/nodes",
                json=record.to_document(),
                headers=self._headers(),
            )
        except requests.RequestException as e:
            raise RemoteError(f"Failed to add node to registry: {e}") from e

        if not response.ok:
            error_cls = ConflictError if response.status_code == 409 else RemoteError
            raise self._error_from_response(response, "add node to registry", error_cls)

        logger.debug(f"Added node '{record.identity}' to {self.url}")

    def update_node(self, record: NodeRecord) -> None:
        try:
            response = requests.put(
                self._node_url(record.identity),
                json=record.to_document(),
                headers=self._headers(),
            )
        except requests.RequestException as e:
            raise RemoteError(f"Failed to update node in registry: {e}") from e

        if not response.ok:
            raise self._error_from_response(response, "update node in registry")

        logger.debug(f"Updated node '{record.identity}' at {self.url}")


# =============================================================================
# In-memory implementation
# =============================================================================

class InMemoryRegistryClient(RemoteRegistryClient):
    """
    Dict-backed RemoteRegistryClient.

    Mirrors the REST service semantics: add fails on an existing identity,
    update fails on a missing one, get returns None when absent.
    """

    def __init__(
        self,
        status: Optional[LocalNodeStatus] = None,
        nodes: Optional[Iterable[NodeRecord]] = None,
    ):
        self.status = status
        self._nodes: Dict[str, NodeRecord] = {}
        for record in nodes or []:
            self._nodes[record.identity] = record

        # Mutations performed, in call order: ("add" | "update", identity)
        self.calls: List[tuple] = []

    def get_node_status(self) -> LocalNodeStatus:
        if self.status is None:
            raise RemoteError("Failed to get node status: no status configured")
        return self.status

    def get_node(self, identity: str) -> Optional[NodeRecord]:
        return self._nodes.get(identity)

    def add_node(self, record: NodeRecord) -> None:
        if record.identity in self._nodes:
            raise ConflictError(
                f"Failed to add node to registry: node '{record.identity}' already exists",
                status_code=409,
            )
        self._nodes[record.identity] = record
        self.calls.append(("add", record.identity))

    def update_node(self, record: NodeRecord) -> None:
        if record.identity not in self._nodes:
            raise RemoteError(
                f"Failed to update node in registry: node '{record.identity}' does not exist",
                status_code=404,
            )
        self._nodes[record.identity] = record
        self.calls.append(("update", record.identity))

    def nodes(self) -> List[NodeRecord]:
        return list(self._nodes.values())
