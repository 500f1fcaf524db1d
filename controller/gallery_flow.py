import logging
from typing import Callable

from controller.capture_flow import epoch_millis
from controller.media_storage_base import JPEG_MIME_TYPE, MediaStorage, StorageError
from controller.photo_store import PhotoReference, PhotoSessionStore

logger = logging.getLogger(__name__)

SAVED_PREFIX = "SavedImage"


class SaveError(Exception):
    pass


class DeleteError(Exception):
    pass


class GalleryFlow:
    """
    Save and delete actions on reviewed photos.

    Delete always goes storage first, then the session list, so the list
    never points at photos that were removed while storage still holds them.
    """

    def __init__(
            self,
            storage: MediaStorage,
            store: PhotoSessionStore,
            album: str,
            clock: Callable[[], int] = epoch_millis,
    ):
        self._storage = storage
        self._store = store
        self._album = album
        self._clock = clock

    def save(self, ref: PhotoReference) -> PhotoReference:
        """Copy `ref` into the saved album and return the copy's reference.

        The copy is not added to the session list.
        """
        try:
            data = self._storage.read(ref)
            copy = self._storage.write(
                data,
                f"{SAVED_PREFIX}_{self._clock()}.jpeg",
                JPEG_MIME_TYPE,
                self._album,
            )
        except StorageError as e:
            raise SaveError(f"Could not save {ref.name}: {e}") from e

        logger.info("Saved %s as %s", ref, copy)
        return copy

    def delete(self, ref: PhotoReference) -> None:
        try:
            self._storage.delete(ref)
        except StorageError as e:
            raise DeleteError(f"Could not delete {ref.name}: {e}") from e

        self._store.remove_photo(ref)
        logger.info("Deleted %s", ref)
