"""
LocalRegistryFile — YAML-file-backed registry of node records.

The registry is an in-memory value: load() reads the file once, upsert()
changes only memory, save() writes the whole sequence back. Merge logic
never holds an open file handle.

File access goes through fsspec, so the path may be a plain local path or
any URL fsspec understands.

Invariants:
- Identities are unique within the sequence
- A replaced record leaves its old position and is appended at the end
- save() replaces the file in one move; a failed write leaves the old file intact

Concurrent writers against the same path are not coordinated: two
read-modify-write cycles can race and the last save() wins.
"""

import logging
from typing import Iterator, List, Optional

import fsspec
import yaml
from pydantic import ValidationError

from .errors import (
    DuplicateIdentityError,
    MalformedRegistryFileError,
    RegistryEnvironmentError,
)
from .models import NodeRecord

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_FILE = "./nodes.yaml"


def _describe_os_error(e: OSError) -> str:
    return e.strerror or str(e)


class LocalRegistryFile:
    """
    Ordered sequence of NodeRecords with identity-keyed upsert.

    Usage:
        registry = LocalRegistryFile.load("nodes.yaml")
        registry.upsert(record, force=False)
        registry.save("nodes.yaml")
    """

    def __init__(self, records: Optional[List[NodeRecord]] = None):
        self._records: List[NodeRecord] = []
        for record in records or []:
            self.upsert(record)

    # =========================================================================
    # Loading / Saving
    # =========================================================================

    @classmethod
    def load(cls, path: str = DEFAULT_REGISTRY_FILE) -> "LocalRegistryFile":
        """
        Load a registry file.

        Args:
            path: Path or fsspec URL of the YAML registry file.

        Returns:
            LocalRegistryFile with the file's records; empty if the file
            does not exist.

        Raises:
            RegistryEnvironmentError: If the file exists but cannot be read.
            MalformedRegistryFileError: If the content is not a YAML sequence
                of valid nodes.
        """
        fs, fs_path = fsspec.core.url_to_fs(path)

        try:
            if not fs.exists(fs_path):
                logger.debug(f"Registry file {path} does not exist, starting empty")
                return cls()

            with fs.open(fs_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise RegistryEnvironmentError(
                f"Failed to open '{path}': {_describe_os_error(e)}"
            ) from e
        except (yaml.YAMLError, UnicodeDecodeError) as e:
            raise MalformedRegistryFileError(
                f"Failed to read registry file '{path}': Not a valid YAML sequence of nodes"
            ) from e

        if data is None:
            return cls()
        if not isinstance(data, list):
            raise MalformedRegistryFileError(
                f"Failed to read registry file '{path}': Not a valid YAML sequence of nodes"
            )

        try:
            records = [NodeRecord.model_validate(entry) for entry in data]
        except ValidationError as e:
            raise MalformedRegistryFileError(
                f"Failed to read registry file '{path}': {e}"
            ) from e

        registry = cls()
        for record in records:
            try:
                registry.upsert(record)
            except DuplicateIdentityError as e:
                raise MalformedRegistryFileError(
                    f"Failed to read registry file '{path}': "
                    f"node '{record.identity}' appears more than once"
                ) from e

        logger.info(f"Loaded {len(registry)} nodes from {path}")
        return registry

    def to_yaml(self) -> str:
        """Serialize the sequence as YAML, ending with a newline."""
        text = yaml.safe_dump(
            [record.to_document() for record in self._records],
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
        if not text.endswith("\n"):
            text += "\n"
        return text

    def save(self, path: str = DEFAULT_REGISTRY_FILE) -> None:
        """
        Write the full sequence to path, replacing any existing file.

        The content is written to a temporary sibling first and then moved
        over the target.

        Raises:
            RegistryEnvironmentError: If the file cannot be written.
        """
        text = self.to_yaml()
        fs, fs_path = fsspec.core.url_to_fs(path)
        temp_path = f"{fs_path}.tmp"

        try:
            with fs.open(temp_path, "w", encoding="utf-8") as f:
                f.write(text)
            fs.mv(temp_path, fs_path)
        except OSError as e:
            self._discard_temp(fs, temp_path)
            raise RegistryEnvironmentError(
                f"Failed to write to file '{path}': {_describe_os_error(e)}"
            ) from e

        logger.debug(f"Saved {len(self)} nodes to {path}")

    @staticmethod
    def _discard_temp(fs, temp_path: str) -> None:
        try:
            if fs.exists(temp_path):
                fs.rm(temp_path)
        except OSError as e:
            logger.warning(f"Failed to remove temporary file {temp_path}: {e}")

    # =========================================================================
    # Merge
    # =========================================================================

    def _index_of(self, identity: str) -> Optional[int]:
        for idx, existing in enumerate(self._records):
            if existing.identity == identity:
                return idx
        return None

    def upsert(self, record: NodeRecord, force: bool = False) -> None:
        """
        Insert a record, or replace the one with the same identity.

        Args:
            record: Record to merge.
            force: Replace an existing record with the same identity.

        Raises:
            DuplicateIdentityError: If the identity exists and force is False.
                The sequence is left unchanged.
        """
        idx = self._index_of(record.identity)
        if idx is not None:
            if not force:
                raise DuplicateIdentityError(record.identity)
            del self._records[idx]
            logger.warning(f"Replacing existing node '{record.identity}'")

        self._records.append(record)

    # =========================================================================
    # Query
    # =========================================================================

    def get(self, identity: str) -> Optional[NodeRecord]:
        idx = self._index_of(identity)
        return self._records[idx] if idx is not None else None

    def identities(self) -> List[str]:
        return [record.identity for record in self._records]

    @property
    def records(self) -> List[NodeRecord]:
        """Snapshot of the records in file order."""
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[NodeRecord]:
        return iter(list(self._records))

    def __contains__(self, identity: str) -> bool:
        return self._index_of(identity) is not None
