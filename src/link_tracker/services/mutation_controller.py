import logging
from enum import Enum
from typing import Awaitable, Callable

from pydantic import ValidationError

from .observable import Observable
from .query_cache import QueryCache, QueryKey
from ..exceptions import InvalidInputError
from ..schemas.link import CreateLinkRequest, Link
from ..schemas.result import Err, Ok

logger = logging.getLogger(__name__)


class MutationStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def validation_messages(error: ValidationError) -> dict[str, str]:
    """Map a pydantic error to {field: message}, first message per field."""
    messages: dict[str, str] = {}

    for detail in error.errors():
        field = str(detail["loc"][0]) if detail["loc"] else "__root__"
        if detail["type"] == "value_error":
            message = str(detail["ctx"]["error"])
        else:
            message = detail["msg"]
        messages.setdefault(field, message)

    return messages


class CreateLinkMutation(Observable):
    """
    Submission of the create-link form.

    Input is validated before anything is sent. A successful write
    invalidates every cached links page since the new row's position
    depends on server-side ordering. A failed write keeps the input and
    leaves the cache untouched.
    """

    def __init__(
        self,
        cache: QueryCache,
        create_link: Callable[[CreateLinkRequest], Awaitable[Ok[Link] | Err]],
        invalidates: tuple[QueryKey, ...] = (("links",),),
    ):
        super().__init__()
        self.cache = cache
        self.create_link = create_link
        self.invalidates = invalidates
        self.status = MutationStatus.IDLE
        self.data: Link | None = None
        self.error: Err | None = None
        self.field_errors: dict[str, str] = {}
        self.last_input: dict | None = None

    @property
    def is_idle(self) -> bool:
        return self.status is MutationStatus.IDLE

    @property
    def is_pending(self) -> bool:
        return self.status is MutationStatus.PENDING

    @property
    def is_success(self) -> bool:
        return self.status is MutationStatus.SUCCEEDED

    @property
    def is_error(self) -> bool:
        return self.status is MutationStatus.FAILED

    @staticmethod
    def validate(values: dict) -> CreateLinkRequest:
        """
        Validate form values.

        Raises:
            InvalidInputError: With one message per offending field
        """
        try:
            return CreateLinkRequest.model_validate(values)
        except ValidationError as e:
            raise InvalidInputError(validation_messages(e)) from e

    async def submit(self, values: dict) -> Ok[Link] | Err:
        """
        Validate and send the form.

        Every call is a new write attempt, including retries after a failure.

        Args:
            values: {"white_url": ..., "black_url": ...}

        Returns:
            Ok[Link] | Err: The created link, or the reason the submission failed
        """
        self.last_input = dict(values)

        try:
            request = self.validate(values)
        except InvalidInputError as e:
            self.status = MutationStatus.FAILED
            self.field_errors = e.errors
            self.error = Err(reason="Please correct the highlighted fields")
            self.data = None
            self._publish(self)
            return self.error

        self.status = MutationStatus.PENDING
        self.field_errors = {}
        self.error = None
        self._publish(self)

        try:
            result = await self.create_link(request)
        except Exception as e:
            logger.exception("Create link raised")
            result = Err(reason=str(e) or type(e).__name__)

        if isinstance(result, Ok):
            self.status = MutationStatus.SUCCEEDED
            self.data = result.value
            logger.info("Link created: %s", self.data.code)
            for prefix in self.invalidates:
                self.cache.invalidate(prefix)
        else:
            self.status = MutationStatus.FAILED
            self.error = result
            self.data = None
            logger.warning("Failed to create link: %s", result.reason)

        self._publish(self)
        return result

    def reset(self) -> None:
        """Back to idle, ready for another link."""
        self.status = MutationStatus.IDLE
        self.data = None
        self.error = None
        self.field_errors = {}
        self.last_input = None
        self._publish(self)
