import logging
from enum import Enum
from typing import Any, Awaitable, Callable

from .observable import Observable
from .query_cache import QueryCache, QueryKey, QueryState, make_key
from ..core.config import settings
from ..schemas.result import Result

logger = logging.getLogger(__name__)

PageFetcher = Callable[[int, int, dict], Awaitable[Result]]


class ViewStatus(str, Enum):
    LOADING = "loading"
    ERROR = "error"
    EMPTY = "empty"
    READY = "ready"


def _check_positive(name: str, value: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        raise ValueError(f"{name} must be an integer >= 1, got {value!r}")
    return value


class PaginatedTable(Observable):
    """
    Page, page size and filters of one server-paginated collection.

    The query key is ``(resource, page, page_size, filters)``. Changing a
    filter always returns to page 1. Whether a page size change does the same
    is controlled by ``reset_page_on_size_change``.

    While mounted, every state change resolves the new key against the cache
    and the table republishes when the entry for its current key changes.
    Entries for any other key, such as a late response for a previous
    filter set, are never surfaced.
    """

    def __init__(
        self,
        cache: QueryCache,
        resource: str,
        fetch_page: PageFetcher,
        page: int = 1,
        page_size: int | None = None,
        filters: dict | None = None,
        reset_page_on_size_change: bool | None = None,
        stale_time: float | None = None,
    ):
        super().__init__()
        self.cache = cache
        self.resource = resource
        self.fetch_page = fetch_page
        self.page = _check_positive("page", page)
        self.page_size = _check_positive("page_size", page_size or settings.DEFAULT_PAGE_SIZE)
        self._filters = {name: value for name, value in (filters or {}).items() if value is not None}
        if reset_page_on_size_change is None:
            reset_page_on_size_change = settings.RESET_PAGE_ON_PAGE_SIZE_CHANGE
        self.reset_page_on_size_change = reset_page_on_size_change
        self.stale_time = stale_time
        self._available_filters: dict[str, list] = {}
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def filters(self) -> dict:
        return dict(self._filters)

    @property
    def key(self) -> QueryKey:
        return make_key(self.resource, self.page, self.page_size, self._filters)

    @property
    def mounted(self) -> bool:
        return self._unsubscribe is not None

    def mount(self) -> QueryState:
        """Start following the cache and resolve the current key."""
        if self._unsubscribe is None:
            self._unsubscribe = self.cache.subscribe(self._on_cache_change)
        return self.refresh()

    def unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def set_filter(self, name: str, value: Any = None) -> None:
        """Set or, with ``None``, remove one filter and go back to page 1."""
        filters = dict(self._filters)
        if value is None:
            filters.pop(name, None)
        else:
            filters[name] = value

        self._filters = filters
        self.page = 1
        self._changed()

    def set_page(self, page: int) -> None:
        self.page = _check_positive("page", page)
        self._changed()

    def set_page_size(self, page_size: int, page: int | None = None) -> None:
        """
        Change the page size.

        Args:
            page_size: New rows per page
            page: Page requested together with the size (kept unless the
                table resets to page 1 on size changes)
        """
        self.page_size = _check_positive("page_size", page_size)
        if self.reset_page_on_size_change:
            self.page = 1
        elif page is not None:
            self.page = _check_positive("page", page)
        self._changed()

    def change(self, page: int, page_size: int) -> None:
        """Combined page/size handler of a pagination control."""
        if page_size != self.page_size:
            self.set_page_size(page_size, page)
        else:
            self.set_page(page)

    def _query_fn(self):
        page, page_size, filters = self.page, self.page_size, dict(self._filters)
        return lambda: self.fetch_page(page, page_size, filters)

    def _changed(self) -> None:
        logger.debug("%s table moved to %s", self.resource, self.key)
        if self.mounted:
            self.refresh()
        self._publish(self)

    def refresh(self) -> QueryState:
        state = self.cache.resolve(self.key, self._query_fn(), stale_time=self.stale_time)
        self._remember_filters(state)
        return state

    async def load(self) -> QueryState:
        """Resolve the current key and wait for it to settle."""
        state = await self.cache.fetch(self.key, self._query_fn(), stale_time=self.stale_time)
        if state.key == self.key:
            self._remember_filters(state)
        return state

    def _on_cache_change(self, key: QueryKey, state: QueryState) -> None:
        if key != self.key:
            return

        self._remember_filters(state)
        if state.is_invalidated and not state.is_fetching:
            self.refresh()
        self._publish(self)

    def _remember_filters(self, state: QueryState) -> None:
        filters = getattr(state.data, "filters", None)
        if state.is_success and filters is not None:
            self._available_filters = filters.model_dump()

    @property
    def state(self) -> QueryState:
        return self.cache.get_state(self.key)

    @property
    def available_filters(self) -> dict[str, list]:
        """Filter options embedded in the last page received, e.g. {"countries": [...]}"""
        return {name: list(values) for name, values in self._available_filters.items()}

    @property
    def rows(self) -> list:
        data = self.state.data
        return list(data.data) if data is not None else []

    @property
    def total(self) -> int:
        data = self.state.data
        return data.pagination.total if data is not None else 0

    @property
    def status(self) -> ViewStatus:
        state = self.state
        if state.is_error:
            return ViewStatus.ERROR
        if state.data is None:
            return ViewStatus.LOADING
        if not state.data.data:
            return ViewStatus.EMPTY
        return ViewStatus.READY
