"""
errors.py — Domain errors raised by the service layer

Every refusal a service can report is one of these classes. Each carries a
stable `code` (rendered to API clients) and the HTTP status the API layer
answers with. Services raise them; `main.py` registers a single handler that
turns them into JSON responses.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse


class MarketplaceError(Exception):
    code = "error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class NotAuthenticated(MarketplaceError):
    code = "not_authenticated"
    status_code = status.HTTP_401_UNAUTHORIZED


class NotAuthorized(MarketplaceError):
    code = "not_authorized"
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(MarketplaceError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class InvalidState(MarketplaceError):
    code = "invalid_state"
    status_code = status.HTTP_409_CONFLICT


class InsufficientBalance(MarketplaceError):
    code = "insufficient_balance"
    status_code = status.HTTP_409_CONFLICT


class DuplicateApplication(MarketplaceError):
    code = "duplicate_application"
    status_code = status.HTTP_409_CONFLICT


class AlreadyOwned(MarketplaceError):
    code = "already_owned"
    status_code = status.HTTP_409_CONFLICT


class InvalidArgument(MarketplaceError):
    code = "invalid_argument"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class CascadeDeleteError(MarketplaceError):
    """A step of the user cascade delete failed.

    `step` names the sub-collection that could not be removed and
    `completed` lists the steps that were already committed, so an operator
    can resume cleanup from where it stopped.
    """

    code = "cascade_delete_failed"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, user_id: int, step: str, completed: list[str], cause: Exception):
        super().__init__(f"Deleting user {user_id} failed at step '{step}': {cause}")
        self.user_id = user_id
        self.step = step
        self.completed = completed
        self.cause = cause


async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    body = {"error": exc.code, "detail": exc.message}
    if isinstance(exc, CascadeDeleteError):
        body["failed_step"] = exc.step
        body["completed_steps"] = exc.completed
    return JSONResponse(status_code=exc.status_code, content=body)
