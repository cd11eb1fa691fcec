"""
Domain errors and secure HTTP translation.

Services raise the StockroomError family; the API layer turns them into
HTTP responses through BusinessError so that internal details never leak.
Use generic error messages externally, detailed logging internally.
"""
from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


class StockroomError(Exception):
    """Base class for errors reported to callers as user-actionable conditions."""


class NotFoundError(StockroomError):
    """Identifier does not resolve, or the resource belongs to another organization."""

    def __init__(self, resource: str, identifier=None):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} {identifier} not found" if identifier is not None else f"{resource} not found")


class InvalidOperationError(StockroomError):
    """Malformed request: zero delta, sign/type mismatch, unknown transaction type, bad bounds."""


class InsufficientStockError(StockroomError):
    """Applying the delta would drive the quantity below zero."""

    def __init__(self, product_id: int, available: int, delta: int):
        self.product_id = product_id
        self.available = available
        self.delta = delta
        super().__init__(
            f"Insufficient stock for product {product_id}: available {available}, requested change {delta:+d}"
        )


class ConflictError(StockroomError):
    """Uniqueness violation (organization, category or product name already taken)."""


class StorageError(StockroomError):
    """
    The atomic commit could not complete. Nothing was written, so the
    operation is safe to retry.
    """

    def __init__(self, message: str = "Storage unavailable", original: Exception = None):
        self.original = original
        super().__init__(message)


class BusinessError:
    """Business-domain HTTP responses with safe (non-leaky) messages."""

    @staticmethod
    def not_found(resource: str = "Resource", reason: str = "") -> HTTPException:
        """
        Generic 404 that doesn't confirm resource existence.

        SECURITY: Returns same response whether resource doesn't exist,
        or belongs to another organization. This prevents IDOR enumeration.
        """
        if reason:
            logger.warning(f"Access denied / not found: {resource} - {reason}")

        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Resource not found",
        )

    @staticmethod
    def unauthorized(reason: str = "") -> HTTPException:
        """
        Generic 401 for all authentication failures.

        SECURITY: Same response for wrong password, non-existent user, etc.
        """
        logger.warning(f"Unauthorized access attempt: {reason}")
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication failed",
            headers={"WWW-Authenticate": "Bearer"},
        )

    @staticmethod
    def bad_request(detail: str) -> HTTPException:
        """
        400 for input validation / business logic errors.

        OK to include specific details here since user caused the issue.
        """
        logger.info(f"Bad request: {detail}")
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )

    @staticmethod
    def conflict(detail: str) -> HTTPException:
        """409 for resource conflicts and stock that cannot cover a movement."""
        logger.info(f"Conflict: {detail}")
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
        )

    @staticmethod
    def storage_unavailable(original_error: Exception = None, retry_after: int = 1) -> HTTPException:
        """
        503 for failed commits. Nothing was written, so clients may retry.
        """
        if original_error:
            logger.error(
                f"Storage failure: {type(original_error).__name__}: {str(original_error)}",
                exc_info=original_error,
            )
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage temporarily unavailable. The request was not applied; please retry.",
            headers={"Retry-After": str(retry_after)},
        )

    @staticmethod
    def server_error(original_error: Exception = None) -> HTTPException:
        """
        Generic 500 - logs actual error internally, hides from user.
        """
        if original_error:
            logger.error(
                f"Internal server error: {type(original_error).__name__}: {str(original_error)}",
                exc_info=original_error,
            )
        else:
            logger.error("Internal server error occurred")

        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An internal error occurred. Please try again later.",
        )

    @staticmethod
    def rate_limit_exceeded(detail: str = "Too many requests", retry_after: int = 60) -> HTTPException:
        logger.warning(f"Rate limit exceeded: {detail}")
        return HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=detail,
            headers={"Retry-After": str(retry_after)},
        )

    @classmethod
    def from_domain(cls, exc: StockroomError) -> HTTPException:
        """Translate a service-layer error into the matching HTTP response."""
        if isinstance(exc, NotFoundError):
            return cls.not_found(exc.resource, reason=str(exc))
        if isinstance(exc, InsufficientStockError):
            return cls.conflict(str(exc))
        if isinstance(exc, ConflictError):
            return cls.conflict(str(exc))
        if isinstance(exc, InvalidOperationError):
            return cls.bad_request(str(exc))
        if isinstance(exc, StorageError):
            return cls.storage_unavailable(exc.original or exc)
        return cls.server_error(exc)
