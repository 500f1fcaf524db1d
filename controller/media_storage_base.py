from abc import ABC, abstractmethod
from typing import List

from controller.photo_store import PhotoReference

JPEG_MIME_TYPE = "image/jpeg"


class StorageError(Exception):
    pass


class StorageReadError(StorageError):
    pass


class StorageWriteError(StorageError):
    pass


class StorageDeleteError(StorageError):
    pass


class MediaStorage(ABC):
    """
    Abstract media library interface.

    Holds the actual image bytes; the session store only keeps references.
    """

    @abstractmethod
    def write(self, data: bytes, name: str, mime_type: str, album: str) -> PhotoReference:
        """Store `data` as a new item and return its reference."""
        pass

    @abstractmethod
    def read(self, ref: PhotoReference) -> bytes:
        """Return the bytes behind `ref`."""
        pass

    @abstractmethod
    def delete(self, ref: PhotoReference) -> None:
        """Remove the item. Deleting a missing item is not an error."""
        pass

    @abstractmethod
    def list_album(self, album: str) -> List[PhotoReference]:
        """Return the items stored in `album`, ordered by name."""
        pass
