"""
Domain exceptions and their HTTP translation.

Services raise the domain exceptions below. Routes translate them with
BusinessError so that users get a stable message while the details go to
the log.
"""
from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


class LedgerbookError(ValueError):
    """Base class for business-rule violations raised by services."""


class NotFoundError(LedgerbookError):
    def __init__(self, resource: str, identifier=None):
        self.resource = resource
        self.identifier = identifier
        suffix = f" {identifier}" if identifier is not None else ""
        super().__init__(f"{resource}{suffix} not found")


class AllocationError(LedgerbookError):
    """Invalid payment allocation (negative amount, unknown target, too large)."""


class OverAllocationError(AllocationError):
    def __init__(self, requested, available):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Allocation of {requested} exceeds the total outstanding of {available}"
        )


class DeletionBlockedError(LedgerbookError):
    def __init__(self, message: str, reasons=None):
        self.reasons = list(reasons or [])
        super().__init__(message)


class InvalidStateError(LedgerbookError):
    """Operation not allowed in the record's current status."""


class BusinessError:
    """HTTPException factories with safe (non-leaky) messages."""

    @staticmethod
    def not_found(resource: str = "Resource", reason: str = "") -> HTTPException:
        """
        404 for a missing record.

        Example:
            if not invoice:
                raise BusinessError.not_found("Invoice")
        """
        if reason:
            logger.info(f"Not found: {resource} - {reason}")

        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found",
        )

    @staticmethod
    def bad_request(detail: str) -> HTTPException:
        """
        400 for input validation / business logic errors.

        OK to include specific details here since user caused the issue.
        Examples: "Allocation exceeds outstanding", "Cheque date is in the future"
        """
        logger.info(f"Bad request: {detail}")
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )

    @staticmethod
    def conflict(detail: str) -> HTTPException:
        """
        409 for resource conflicts.
        Example: "Cannot delete customer with invoices"
        """
        logger.info(f"Conflict: {detail}")
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
        )

    @staticmethod
    def server_error(original_error: Exception = None) -> HTTPException:
        """
        Generic 500 - logs actual error internally, hides from user.
        """
        if original_error:
            logger.error(
                f"Internal server error: {type(original_error).__name__}: {str(original_error)}",
                exc_info=True
            )
        else:
            logger.error("Internal server error occurred", exc_info=True)

        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An internal error occurred. Please try again later.",
        )

    @classmethod
    def from_domain(cls, error: LedgerbookError) -> HTTPException:
        """Map a service exception to the matching HTTP error."""
        if isinstance(error, NotFoundError):
            return cls.not_found(error.resource, str(error))
        if isinstance(error, DeletionBlockedError):
            return cls.conflict(str(error))
        return cls.bad_request(str(error))
