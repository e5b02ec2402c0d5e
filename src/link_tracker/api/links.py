from .transport import Transport
from ..decorators.api_call import api_call
from ..schemas.link import CreateLinkRequest, Link, LinkPage, LinkStats
from ..schemas.result import Err, Ok


class LinkAPI:
    """Endpoints of the links collection"""

    @staticmethod
    @api_call("GET /links")
    async def list_links(transport: Transport, page: int, page_size: int) -> Ok[LinkPage] | Err:
        """
        Fetch one page of links, newest first.

        Args:
            transport: API transport
            page: 1-based page index
            page_size: Rows per page

        Returns:
            Ok[LinkPage] | Err: The page and the server-side total
        """
        payload = await transport.get("/links", params={"page": page, "pageSize": page_size})
        return Ok(value=LinkPage.model_validate(payload))

    @staticmethod
    @api_call("POST /links")
    async def create_link(transport: Transport, link_data: CreateLinkRequest) -> Ok[Link] | Err:
        """
        Create a new tracking link.

        Args:
            transport: API transport
            link_data: Validated white/black URLs

        Returns:
            Ok[Link] | Err: The created link with its server-assigned id and code
        """
        payload = await transport.post("/links", json=link_data.model_dump())
        return Ok(value=Link.model_validate(payload))

    @staticmethod
    @api_call("GET /links/{id}")
    async def get_link(transport: Transport, link_id: int) -> Ok[Link] | Err:
        """
        Fetch a single link.

        Args:
            transport: API transport
            link_id: Link id

        Returns:
            Ok[Link] | Err: The link, or Err with status 404 when it does not exist
        """
        payload = await transport.get(f"/links/{link_id}")
        return Ok(value=Link.model_validate(payload))

    @staticmethod
    @api_call("GET /links/{id}/stats")
    async def get_link_stats(transport: Transport, link_id: int) -> Ok[LinkStats] | Err:
        """
        Fetch click statistics for a single link.

        Args:
            transport: API transport
            link_id: The link to get stats for

        Returns:
            Ok[LinkStats] | Err: Total, bot and per-country click counts
        """
        payload = await transport.get(f"/links/{link_id}/stats")
        return Ok(value=LinkStats.model_validate(payload))
