"""
Archive Registry - Singleton Archive Handle per Key

Thread-safe mapping from archive key (YYYY-MM-DD_Location) to ArchiveFile.
get_or_create is the only path that constructs archive handles, and it does the
membership check and the insert under one lock, so concurrent callers for the
same key always receive the same instance.

Removal contract:
- remove(key) forgets the handle only; the file stays on disk
- delete(key) and ArchiveFile.delete() remove the file and the entry together

The registry is an ordinary object owned by the hosting service; there is no
module-level instance.

Usage:
    from geoarchive.registry import Registry

    registry = Registry(settings.SEARCH_GEO_DIR)
    archive = registry.get_or_create("2021-06-01_London")
    archive.append(raw_response)
"""

import functools
import logging
import threading
from pathlib import Path
from typing import Callable, Optional, Union

from geoarchive.archive_file import ArchiveFile
from geoarchive.errors import NotFoundError
from geoarchive.types import ArchiveKey

logger = logging.getLogger(__name__)

KeyLike = Union[str, ArchiveKey]
ArchiveFactory = Callable[[str], ArchiveFile]


class Registry:
    """Shared cache of archive handles, one per archive key."""

    def __init__(self, base_dir: Union[str, Path]) -> None:
        """
        Initialize an empty registry.

        Args:
            base_dir: Directory holding the archive files (created if missing)
        """
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._archives: dict[str, ArchiveFile] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._archives)

    def _default_factory(self, key: str) -> ArchiveFile:
        return ArchiveFile(self.base_dir / key)

    def has(self, key: KeyLike) -> bool:
        with self._lock:
            return str(key) in self._archives

    def get(self, key: KeyLike) -> Optional[ArchiveFile]:
        with self._lock:
            return self._archives.get(str(key))

    def require(self, key: KeyLike) -> ArchiveFile:
        """
        Look up a registered archive.

        Raises:
            NotFoundError: If no archive is registered under the key
        """
        archive = self.get(key)
        if archive is None:
            raise NotFoundError("Archive", str(key))
        return archive

    def get_or_create(
        self,
        key: KeyLike,
        factory: Optional[ArchiveFactory] = None,
    ) -> ArchiveFile:
        """
        Return the archive registered under key, creating it if absent.

        The factory runs at most once per absent key, under the registry lock.

        Args:
            key: Archive key
            factory: Builds the ArchiveFile for a key string; defaults to a
                file named after the key inside base_dir

        Returns:
            The single ArchiveFile for this key

        Raises:
            ValueError: If a string key is not a valid YYYY-MM-DD_Location key
        """
        key = str(ArchiveKey.parse(key)) if isinstance(key, str) else str(key)
        with self._lock:
            archive = self._archives.get(key)
            if archive is not None:
                return archive

            archive = (factory or self._default_factory)(key)
            archive.on_delete = functools.partial(self._forget, key)
            self._archives[key] = archive

        logger.debug(
            "Registered archive",
            extra={"archive_key": key, "archive_path": str(archive.path)},
        )
        return archive

    def remove(self, key: KeyLike) -> Optional[ArchiveFile]:
        """
        Drop the mapping for key without touching the file on disk.

        Returns:
            The handle that was registered, or None
        """
        with self._lock:
            archive = self._archives.pop(str(key), None)
        if archive is not None:
            archive.on_delete = None
        return archive

    def delete(self, key: KeyLike) -> None:
        """
        Delete the archive file registered under key and drop the mapping.

        Idempotent: an unknown key is ignored.

        Raises:
            OSError: If the file exists but cannot be removed
        """
        archive = self.get(key)
        if archive is not None:
            archive.delete()

    def _forget(self, key: str, archive: ArchiveFile) -> None:
        with self._lock:
            if self._archives.get(key) is archive:
                del self._archives[key]

    def all_paths(self) -> list[Path]:
        """Snapshot of every registered archive path; may be stale once returned."""
        with self._lock:
            return [archive.path for archive in self._archives.values()]

    def clear(self) -> None:
        """Forget every registered archive. Files are left on disk."""
        with self._lock:
            archives = list(self._archives.values())
            self._archives.clear()
        for archive in archives:
            archive.on_delete = None
