import itertools
import logging
import threading
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Callable, Dict, List, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhotoReference:
    """Storage-relative locator of one stored image."""

    locator: str

    def __post_init__(self):
        path = PurePosixPath(self.locator)
        if not self.locator or path.is_absolute() or ".." in path.parts:
            raise ValueError(f"Invalid photo locator: {self.locator!r}")

    @property
    def name(self) -> str:
        return PurePosixPath(self.locator).name

    def __str__(self) -> str:
        return self.locator


PhotoList = Tuple[PhotoReference, ...]
Observer = Callable[[PhotoList], None]


@dataclass(frozen=True)
class Subscription:
    id: int


class PhotoSessionStore:
    """
    Ordered photos of the current session.

    - Insertion order is capture order; duplicates are kept.
    - Observers get the full list on subscribe and after every change,
      synchronously and in change order.
    - Callers only ever see tuples, never the underlying list.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._photos: List[PhotoReference] = []
        self._observers: Dict[int, Observer] = {}
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        with self._lock:
            return len(self._photos)

    def current_photos(self) -> PhotoList:
        with self._lock:
            return tuple(self._photos)

    def add_photo(self, ref: PhotoReference) -> None:
        if ref is None:
            raise ValueError("Photo reference is required")

        with self._lock:
            self._photos.append(ref)
            self._notify()

    def remove_photo(self, ref: PhotoReference) -> None:
        with self._lock:
            try:
                self._photos.remove(ref)
            except ValueError:
                # already gone
                return
            self._notify()

    # ---------- Observation ----------

    def subscribe(self, callback: Observer) -> Subscription:
        with self._lock:
            subscription = Subscription(next(self._ids))
            self._observers[subscription.id] = callback
            self._deliver(callback, tuple(self._photos))
            return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._observers.pop(subscription.id, None)

    def _notify(self) -> None:
        snapshot = tuple(self._photos)
        for callback in list(self._observers.values()):
            self._deliver(callback, snapshot)

    @staticmethod
    def _deliver(callback: Observer, snapshot: PhotoList) -> None:
        try:
            callback(snapshot)
        except Exception:
            logger.exception("Photo list observer failed")
