"""
Archive File - One JSON Array File per Day per Location

Lifecycle of a single archive file:
    OPEN --first non-empty append--> APPENDING --seal--> SEALED (terminal)

Before sealing the file holds comma-joined status objects with no enclosing
brackets. Sealing rewrites it as exactly `[` + content + `]`.

Features:
- Streaming extraction of each appended response (see geoarchive.extractor)
- Per-archive lock: append, seal and delete never interleave on one file
- Atomic seal (temporary sibling file + os.replace)
- State recovery from an existing file when a handle is re-created

Handles must be obtained from geoarchive.registry.Registry.get_or_create so
that only one handle exists per key.
"""

import contextlib
import logging
import os
import shutil
import stat
import tempfile
import threading
from pathlib import Path
from typing import Callable, Optional, Union

from geoarchive.errors import ClosedArchiveError
from geoarchive.extractor import extract
from geoarchive.types import ArchiveState, Metadata

logger = logging.getLogger(__name__)

LEFT_SQUARE_BRACKET = b"["
RIGHT_SQUARE_BRACKET = b"]"

SEALED_FILE_MODE = stat.S_IRUSR | stat.S_IRGRP | stat.S_IROTH

# Enough to skip leading whitespace when sniffing the state of an existing file
_SNIFF_BYTES = 64


class ArchiveFile:
    """
    Owner of one archive file and its lifecycle state.

    Attributes:
        path: Location of the JSON file (file name is the archive key)
        on_delete: Called with this handle after delete(); set by the registry
    """

    def __init__(
        self,
        path: Union[str, Path],
        on_delete: Optional[Callable[["ArchiveFile"], None]] = None,
    ) -> None:
        self.path = Path(path)
        self.on_delete = on_delete
        self._lock = threading.Lock()
        self._deleted = False
        self._state = self._recover_state()

    def __repr__(self) -> str:
        return f"ArchiveFile(path={str(self.path)!r}, state={self._state.value})"

    @property
    def key(self) -> str:
        return self.path.name

    @property
    def state(self) -> ArchiveState:
        return self._state

    def _recover_state(self) -> ArchiveState:
        """Infer the state of a file left behind by an earlier handle or process."""
        try:
            with open(self.path, "rb") as f:
                head = f.read(_SNIFF_BYTES).lstrip()
        except FileNotFoundError:
            return ArchiveState.OPEN

        if not head:
            return ArchiveState.OPEN
        if head.startswith(LEFT_SQUARE_BRACKET):
            state = ArchiveState.SEALED
        else:
            state = ArchiveState.APPENDING

        logger.info(
            "Recovered existing archive",
            extra={"archive_path": str(self.path), "state": state.value},
        )
        return state

    def _check_writable(self, operation: str) -> None:
        if self._deleted:
            raise ClosedArchiveError(self.path, operation, reason="deleted")
        if self._state is ArchiveState.SEALED:
            raise ClosedArchiveError(self.path, operation)

    def append(self, raw_response: Union[str, bytes]) -> Metadata:
        """
        Append the statuses of one search response to the archive.

        Args:
            raw_response: Raw search API response (JSON text)

        Returns:
            Pagination metadata extracted from the response

        Raises:
            ClosedArchiveError: If the archive is sealed (file left untouched)
            OSError: If the file cannot be written
        """
        with self._lock:
            self._check_writable("append")

            fragment, metadata = extract(raw_response, self._state)
            data = fragment.encode("utf-8")

            # An empty first page still creates the file so it can be sealed as []
            if data or self._state is ArchiveState.OPEN:
                with open(self.path, "ab") as f:
                    f.write(data)

            if data:
                self._state = ArchiveState.APPENDING

        logger.debug(
            "Appended search response",
            extra={
                "archive_path": str(self.path),
                "bytes_written": len(data),
                "max_id": metadata.max_id,
                "count": metadata.count,
            },
        )
        return metadata

    def seal(self) -> None:
        """
        Wrap the accumulated content in array brackets and make the archive read-only.

        Raises:
            ClosedArchiveError: If the archive is already sealed
            OSError: If the file cannot be read or rewritten
        """
        with self._lock:
            self._check_writable("seal")

            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "wb") as target, open(self.path, "rb") as source:
                    target.write(LEFT_SQUARE_BRACKET)
                    shutil.copyfileobj(source, target)
                    target.write(RIGHT_SQUARE_BRACKET)
                os.chmod(tmp_name, SEALED_FILE_MODE)
                os.replace(tmp_name, self.path)
            except OSError:
                with contextlib.suppress(FileNotFoundError):
                    os.unlink(tmp_name)
                raise

            self._state = ArchiveState.SEALED

        logger.info("Sealed archive", extra={"archive_path": str(self.path)})

    def delete(self) -> None:
        """
        Remove the archive file (if present) and drop it from its registry.

        Idempotent: deleting a missing file is not an error.

        Raises:
            OSError: If an existing file cannot be removed
        """
        with self._lock:
            self.path.unlink(missing_ok=True)
            self._deleted = True

        logger.info("Deleted archive", extra={"archive_path": str(self.path)})

        if self.on_delete is not None:
            self.on_delete(self)
