"""
Error taxonomy for the search compiler and executor.

Validation-class errors (MalformedFilter, ValidationRejected) are raised
before any database call. DatabaseError and UnknownError wrap failures of
the execution step; their details stay in server logs.
"""

from typing import Any, Dict, List, Optional


GENERIC_VALIDATION_MESSAGE = "Request contained invalid payload"
GENERIC_DATABASE_MESSAGE = (
    "There was a database error when running the query. "
    "Check server logs for more information"
)
GENERIC_SERVER_MESSAGE = (
    "A server-side error was thrown. It was not directly thrown by "
    "validation or the database query. Check server logs for more information"
)


class SearchboxError(Exception):
    """Base class for all errors raised while serving a search request."""

    status_code: int = 500
    public_message: str = GENERIC_SERVER_MESSAGE

    def public_body(self) -> Dict[str, Any]:
        return {"error": self.public_message}


class ValidationRejected(SearchboxError):
    """
    Request violates the payload schema, an allow-list or a pagination ceiling.

    Carries every offending field so the caller can fix them in one pass.
    """

    status_code = 400
    public_message = GENERIC_VALIDATION_MESSAGE

    def __init__(self, issues: List[Dict[str, str]]):
        self.issues = issues
        fields = ", ".join(issue["field"] for issue in issues)
        super().__init__(f"Invalid request fields: {fields}")

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationRejected":
        return cls([{"field": field, "message": message}])

    @property
    def fields(self) -> List[str]:
        return [issue["field"] for issue in self.issues]

    def public_body(self) -> Dict[str, Any]:
        return {"error": self.public_message, "issues": self.issues}


class MalformedFilter(ValidationRejected):
    """A numeric or facet filter token does not match its grammar."""

    def __init__(self, token: Any, reason: str, field: str = "filters"):
        self.token = token
        self.reason = reason
        super().__init__([{"field": field, "message": f"{reason}: {token!r}"}])


class DuplicateFacetConfig(SearchboxError):
    """
    Index configuration declares one attribute in conflicting facet categories.

    Raised while loading configuration, never per request.
    """

    def __init__(self, index_name: Optional[str], attributes: List[str]):
        self.index_name = index_name
        self.attributes = attributes
        super().__init__(
            f"Duplicate facets in config for index {index_name or '<default>'}: "
            f"{', '.join(attributes)} - an attribute may only appear once across "
            "plain, filterOnly() and searchable() declarations"
        )


class DatabaseError(SearchboxError):
    """The compiled statement failed at the engine."""

    public_message = GENERIC_DATABASE_MESSAGE


class UnknownError(SearchboxError):
    """Anything else that went wrong while serving a request."""


def public_error(error: BaseException) -> Dict[str, Any]:
    """
    Map an exception to the body that may be sent to the client.

    Validation errors expose their issues; database and server errors are
    replaced by a generic message.
    """
    if isinstance(error, SearchboxError):
        return error.public_body()
    return {"error": GENERIC_SERVER_MESSAGE}


def status_for(error: BaseException) -> int:
    if isinstance(error, SearchboxError):
        return error.status_code
    return 500
