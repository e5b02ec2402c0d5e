import logging
from typing import Any, Awaitable, Callable

from .observable import Observable
from .query_cache import QueryCache, QueryKey, QueryState, make_key
from ..schemas.result import Result

logger = logging.getLogger(__name__)

DetailFetcher = Callable[[Any], Awaitable[Result]]


class DetailOnDemand(Observable):
    """
    Expensive per-entity view fetched only for the selected entity.

    The key is ``(resource, selected_id)`` and the query is disabled while
    nothing is selected. Visibility (``show``/``hide``) is tracked separately
    and never changes the key.
    """

    def __init__(
        self,
        cache: QueryCache,
        resource: str,
        fetch_detail: DetailFetcher,
        stale_time: float | None = None,
    ):
        super().__init__()
        self.cache = cache
        self.resource = resource
        self.fetch_detail = fetch_detail
        self.stale_time = stale_time
        self.selected_id: Any = None
        self.visible = False
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def key(self) -> QueryKey:
        return make_key(self.resource, self.selected_id)

    @property
    def enabled(self) -> bool:
        return self.selected_id is not None

    @property
    def mounted(self) -> bool:
        return self._unsubscribe is not None

    def mount(self) -> QueryState:
        if self._unsubscribe is None:
            self._unsubscribe = self.cache.subscribe(self._on_cache_change)
        return self.refresh()

    def unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def select(self, entity_id: Any) -> None:
        if entity_id is None:
            self.clear()
            return

        changed = entity_id != self.selected_id
        self.selected_id = entity_id
        if changed:
            logger.debug("Selected %s %s", self.resource, entity_id)
            if self.mounted:
                self.refresh()
            self._publish(self)

    def clear(self) -> None:
        if self.selected_id is None:
            return
        self.selected_id = None
        self._publish(self)

    def open(self, entity_id: Any) -> None:
        """Select an entity and show its detail view."""
        self.select(entity_id)
        self.show()

    def show(self) -> None:
        if not self.visible:
            self.visible = True
            self._publish(self)

    def hide(self) -> None:
        if self.visible:
            self.visible = False
            self._publish(self)

    def _query_fn(self):
        entity_id = self.selected_id
        return lambda: self.fetch_detail(entity_id)

    def refresh(self) -> QueryState:
        return self.cache.resolve(
            self.key, self._query_fn(), enabled=self.enabled, stale_time=self.stale_time
        )

    async def load(self) -> QueryState:
        return await self.cache.fetch(
            self.key, self._query_fn(), enabled=self.enabled, stale_time=self.stale_time
        )

    def _on_cache_change(self, key: QueryKey, state: QueryState) -> None:
        if not self.enabled or key != self.key:
            return

        if state.is_invalidated and not state.is_fetching:
            self.refresh()
        self._publish(self)

    @property
    def state(self) -> QueryState:
        if not self.enabled:
            return QueryState(key=self.key)
        return self.cache.get_state(self.key)

    @property
    def is_loading(self) -> bool:
        return self.state.is_loading

    @property
    def is_error(self) -> bool:
        return self.state.is_error

    @property
    def data(self) -> Any:
        """
        Payload of the current selection, or None.

        Data is only returned when the entry's key names the selected id.
        """
        state = self.state
        if not self.enabled or not state.is_success:
            return None
        if state.key != make_key(self.resource, self.selected_id):
            return None
        return state.data
