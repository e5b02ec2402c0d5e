class LinkTrackerError(Exception):
    """Base class for dashboard client errors"""


class TransportError(LinkTrackerError):
    """The API could not be reached or answered with an error."""

    def __init__(self, reason: str, status_code: int | None = None):
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is None:
            return self.reason
        return f"{self.status_code}: {self.reason}"


class InvalidInputError(LinkTrackerError):
    """Form input rejected before it was sent."""

    def __init__(self, errors: dict[str, str]):
        super().__init__(", ".join(f"{field}: {msg}" for field, msg in errors.items()))
        self.errors = errors
