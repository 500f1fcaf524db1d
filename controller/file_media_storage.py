import os
import tempfile
import threading
from pathlib import Path, PurePosixPath
from typing import List

from controller.media_storage_base import (
    JPEG_MIME_TYPE,
    MediaStorage,
    StorageDeleteError,
    StorageError,
    StorageReadError,
    StorageWriteError,
)
from controller.photo_store import PhotoReference

_SUFFIXES = {JPEG_MIME_TYPE: ".jpeg"}


class FileMediaStorage(MediaStorage):
    """
    Media library on a local directory tree.

    Albums are relative directories (e.g. "Pictures/Camera") and references
    are paths relative to `root`.
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self._io_lock = threading.Lock()

    def path_for(self, ref: PhotoReference) -> Path:
        path = (self.root / ref.locator).resolve()
        if not path.is_relative_to(self.root.resolve()):
            raise StorageError(f"Reference outside of media root: {ref}")
        return path

    # ---------- Required interface ----------

    def write(self, data: bytes, name: str, mime_type: str, album: str) -> PhotoReference:
        suffix = _SUFFIXES.get(mime_type)
        if suffix is None:
            raise StorageWriteError(f"Unsupported mime type: {mime_type}")
        if PurePosixPath(name).name != name:
            raise StorageWriteError(f"Invalid file name: {name}")
        if not name.endswith(suffix):
            name = f"{name}{suffix}"

        try:
            ref = PhotoReference(f"{PurePosixPath(album)}/{name}")
            target = self.path_for(ref)
        except (ValueError, StorageError) as e:
            raise StorageWriteError(f"Invalid album {album!r}") from e

        try:
            with self._io_lock:
                target.parent.mkdir(parents=True, exist_ok=True)
                if target.exists():
                    raise StorageWriteError(f"Media item already exists: {ref}")
                self._write_atomic(target, data)
        except OSError as e:
            raise StorageWriteError(f"Failed to write {ref}: {e}") from e

        return ref

    def read(self, ref: PhotoReference) -> bytes:
        try:
            return self.path_for(ref).read_bytes()
        except StorageError as e:
            raise StorageReadError(str(e)) from e
        except FileNotFoundError as e:
            raise StorageReadError(f"Media item not found: {ref}") from e
        except OSError as e:
            raise StorageReadError(f"Failed to read {ref}: {e}") from e

    def delete(self, ref: PhotoReference) -> None:
        try:
            path = self.path_for(ref)
        except StorageError as e:
            raise StorageDeleteError(str(e)) from e

        try:
            with self._io_lock:
                path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageDeleteError(f"Failed to delete {ref}: {e}") from e

    def list_album(self, album: str) -> List[PhotoReference]:
        directory = self.root / album
        if not directory.is_dir():
            return []

        return [
            PhotoReference(f"{PurePosixPath(album)}/{path.name}")
            for path in sorted(directory.iterdir())
            if path.is_file() and path.suffix in _SUFFIXES.values()
        ]

    # ---------- Helpers ----------

    @staticmethod
    def _write_atomic(target: Path, data: bytes) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".", suffix=".part")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
