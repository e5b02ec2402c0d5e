import logging

from .api import ClickAPI, LinkAPI, Transport
from .services.detail_controller import DetailOnDemand
from .services.mutation_controller import CreateLinkMutation
from .services.query_cache import QueryCache
from .services.table_controller import PaginatedTable

logger = logging.getLogger(__name__)


class Dashboard:
    """
    The operator dashboard: one query cache shared by its views.

    - ``links``: paginated links table
    - ``clicks``: paginated, filterable clicks table
    - ``link``: the selected link itself
    - ``link_stats``: statistics of the selected link
    - ``create_link``: create-link form

    Use it as an async context manager to mount the views and release the
    transport afterwards.
    """

    def __init__(
        self,
        transport: Transport | None = None,
        cache: QueryCache | None = None,
        page_size: int | None = None,
        reset_page_on_size_change: bool | None = None,
    ):
        self.transport = transport or Transport()
        self.cache = cache or QueryCache()

        self.links = PaginatedTable(
            self.cache,
            "links",
            lambda page, page_size, filters: LinkAPI.list_links(self.transport, page, page_size),
            page_size=page_size,
            reset_page_on_size_change=reset_page_on_size_change,
        )
        self.clicks = PaginatedTable(
            self.cache,
            "clicks",
            lambda page, page_size, filters: ClickAPI.list_clicks(self.transport, page, page_size, **filters),
            page_size=page_size,
            reset_page_on_size_change=reset_page_on_size_change,
        )
        self.link = DetailOnDemand(
            self.cache,
            "link",
            lambda link_id: LinkAPI.get_link(self.transport, link_id),
        )
        self.link_stats = DetailOnDemand(
            self.cache,
            "linkStats",
            lambda link_id: LinkAPI.get_link_stats(self.transport, link_id),
        )
        self.create_link = CreateLinkMutation(
            self.cache,
            lambda request: LinkAPI.create_link(self.transport, request),
        )

    def mount(self) -> None:
        self.links.mount()
        self.clicks.mount()
        self.link.mount()
        self.link_stats.mount()
        logger.info("Dashboard mounted against %s", self.transport.base_url)

    def unmount(self) -> None:
        self.links.unmount()
        self.clicks.unmount()
        self.link.unmount()
        self.link_stats.unmount()

    def close(self) -> None:
        """Stop following the cache and release the transport; settled results stay readable."""
        self.unmount()
        self.transport.close()

    async def __aenter__(self) -> "Dashboard":
        self.mount()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()
