import logging
import time
from functools import wraps

from pydantic import ValidationError

from ..exceptions import TransportError
from ..schemas.result import Err

logger = logging.getLogger(__name__)


def api_call(name: str):
    """
    Decorator turning an endpoint coroutine into a tagged-result call.

    The wrapped coroutine returns ``Ok(value=...)`` or raises. Transport
    failures and payloads that do not match the expected schema are
    returned as ``Err`` so the query cache only ever sees ``Ok``/``Err``.
    Every call is logged with its elapsed time.

    Usage:
        @api_call("GET /links")
        async def list_links(transport, page, page_size):
            payload = await transport.get("/links", params=...)
            return Ok(value=LinkPage.model_validate(payload))
    """

    def decorator(func):

        @wraps(func)
        async def wrapper(*args, **kwargs):
            started = time.perf_counter()

            try:
                result = await func(*args, **kwargs)
            except TransportError as e:
                logger.warning("%s failed after %.3fs: %s", name, time.perf_counter() - started, e)
                return Err(reason=e.reason, status_code=e.status_code)
            except ValidationError as e:
                logger.warning("%s returned a malformed payload: %s", name, e)
                return Err(reason=f"Malformed response from {name}")

            logger.info("%s ok in %.3fs", name, time.perf_counter() - started)
            return result

        return wrapper

    return decorator
