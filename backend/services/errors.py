"""
Domain error taxonomy shared by every service.

Services raise these; ``main.py`` turns them into HTTP responses. Each
error carries the status code and a short machine-readable ``code`` so the
client can tell "already friends" apart from a generic failure.
"""
from functools import wraps
from typing import Optional
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger(__name__)


class SocialError(Exception):
    """Base class for errors surfaced to the caller."""
    status_code = 400
    code = "error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class NotAuthenticatedError(SocialError):
    """Operation needs a viewer identity and none was supplied."""
    status_code = 401
    code = "not_authenticated"

    def __init__(self, message: str = "Authentication required", code: Optional[str] = None):
        super().__init__(message, code)


class NotAuthorizedError(SocialError):
    """Viewer tried to mutate a row it does not own."""
    status_code = 403
    code = "not_authorized"


class NotFoundError(SocialError):
    """Row does not exist or is not visible to the viewer."""
    status_code = 404
    code = "not_found"


class ConflictError(SocialError):
    """Duplicate or contradicting state (already friends, name taken, ...)."""
    status_code = 409
    code = "conflict"


class InputValidationError(SocialError):
    """Malformed input, rejected before any write."""
    status_code = 422
    code = "invalid_input"


class UpstreamUnavailableError(SocialError):
    """The relational store or object store failed; the caller may retry."""
    status_code = 503
    code = "upstream_unavailable"
    retry_after = 5

    def __init__(self, message: str = "Service temporarily unavailable, please retry",
                 code: Optional[str] = None):
        super().__init__(message, code)


def require_viewer(viewer_id: Optional[int]) -> int:
    """Return the viewer id or raise when the call is anonymous."""
    if viewer_id is None:
        raise NotAuthenticatedError()
    return viewer_id


def translate_store_errors(func):
    """
    Wrap a service coroutine so relational store failures roll back the
    session and surface as domain errors. A unique constraint violation
    becomes a ConflictError; any other store failure is retryable.
    """
    @wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"{func.__qualname__} hit a constraint: {e.orig}")
            raise ConflictError("The change conflicts with existing data") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"{func.__qualname__} failed against the store: {e}")
            raise UpstreamUnavailableError() from e
    return wrapper
