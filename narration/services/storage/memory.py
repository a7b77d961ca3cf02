"""In-memory artifact store."""

from narration.lib.exceptions import PersistenceError


class InMemoryArtifactStore:
    """
    Dictionary-backed implementation of ArtifactStore.

    Useful for development and tests. State lives only as long as
    the instance does.
    """

    def __init__(self):
        self._objects: dict[str, tuple[bytes, str]] = {}

    async def get(self, key: str) -> bytes | None:
        entry = self._objects.get(key)
        return entry[0] if entry else None

    async def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise PersistenceError(
                f"Expected bytes, got {type(data).__name__}", key=key, operation="put"
            )
        self._objects[key] = (bytes(data), content_type)

    async def delete(self, key: str) -> None:
        self._objects.pop(key, None)

    async def head(self, key: str) -> bool:
        return key in self._objects

    async def list_keys(self, prefix: str) -> list[str]:
        return sorted(key for key in self._objects if key.startswith(prefix))

    # Test helper methods

    def content_type(self, key: str) -> str | None:
        """Content type recorded for a key."""
        entry = self._objects.get(key)
        return entry[1] if entry else None

    def keys(self) -> list[str]:
        """All stored keys, sorted."""
        return sorted(self._objects)
