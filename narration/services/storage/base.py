"""Artifact store Protocol definition."""

from typing import Protocol, runtime_checkable

from narration.lib.exceptions import PersistenceError


@runtime_checkable
class ArtifactStore(Protocol):
    """
    Contract for artifact persistence implementations.

    A durable map from string key to byte blob with list-by-prefix.
    Every mutation is a single-key put or delete; there are no
    multi-key transactions.
    """

    async def get(self, key: str) -> bytes | None:
        """
        Read a blob.

        Returns:
            The stored bytes, or None if the key does not exist

        Raises:
            PersistenceError: If read fails (not for missing data)
        """
        ...

    async def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        """
        Write a blob, replacing any existing value.

        Raises:
            PersistenceError: If write fails

        Contract:
            - MUST persist before returning
            - MUST be an idempotent overwrite
        """
        ...

    async def delete(self, key: str) -> None:
        """
        Delete a blob. Deleting a missing key is not an error.

        Raises:
            PersistenceError: If delete fails
        """
        ...

    async def head(self, key: str) -> bool:
        """
        Check whether a key exists without reading it.

        Raises:
            PersistenceError: If the check fails
        """
        ...

    async def list_keys(self, prefix: str) -> list[str]:
        """
        List keys starting with prefix, sorted.

        Raises:
            PersistenceError: If listing fails
        """
        ...


__all__ = ["ArtifactStore", "PersistenceError"]
