"""Release handles for everything a plugin registers."""

from collections.abc import Callable

from mdnotes.logger import get_logger

logger = get_logger(__name__)


class Disposable:
    """
    A single release operation. Calling `dispose()` more than once only
    runs the release callback the first time.

    """

    def __init__(self, release: Callable[[], object]) -> None:
        self._release: Callable[[], object] | None = release

    @property
    def disposed(self) -> bool:
        return self._release is None

    def dispose(self) -> None:
        release, self._release = self._release, None
        if release is not None:
            release()

    def __enter__(self) -> "Disposable":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()


class DisposableSet:
    """Collects the disposables a plugin acquires while active so they can be swept at once."""

    def __init__(self) -> None:
        self._items: list[Disposable] = []

    def add(self, disposable: Disposable) -> Disposable:
        self._items.append(disposable)
        return disposable

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(list(self._items))

    def dispose_all(self) -> int:
        """
        Release every collected disposable, newest first. A failing release is
        logged and the sweep continues, so one bad handle cannot leak the rest.

        Returns the number of disposables that were released.
        """
        items, self._items = self._items, []
        released = 0
        for disposable in reversed(items):
            try:
                disposable.dispose()
                released += 1
            except Exception:
                logger.exception("Failed to release a plugin resource")
        return released
