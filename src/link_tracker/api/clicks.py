from .transport import Transport
from ..decorators.api_call import api_call
from ..schemas.click import ClickPage
from ..schemas.result import Err, Ok


class ClickAPI:
    """Endpoints of the clicks collection"""

    @staticmethod
    def build_params(page: int, page_size: int, country: str | None = None, is_bot: bool | None = None) -> dict:
        """
        Query string for GET /clicks.

        Absent filters are left out entirely; ``is_bot`` is sent as the
        literal ``true``/``false`` the server parses.
        """
        params = {"page": page, "pageSize": page_size}

        if country is not None:
            params["country"] = country

        if is_bot is not None:
            params["is_bot"] = "true" if is_bot else "false"

        return params

    @staticmethod
    @api_call("GET /clicks")
    async def list_clicks(
        transport: Transport,
        page: int,
        page_size: int,
        country: str | None = None,
        is_bot: bool | None = None,
    ) -> Ok[ClickPage] | Err:
        """
        Fetch one page of clicks matching the optional filters.

        Args:
            transport: API transport
            page: 1-based page index
            page_size: Rows per page
            country: Only clicks from this country code
            is_bot: Only bot (True) or only human (False) clicks

        Returns:
            Ok[ClickPage] | Err: The page, the total and the available countries
        """
        params = ClickAPI.build_params(page, page_size, country=country, is_bot=is_bot)
        payload = await transport.get("/clicks", params=params)
        return Ok(value=ClickPage.model_validate(payload))
