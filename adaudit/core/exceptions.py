"""Custom exception classes for the auditor."""

from fastapi import HTTPException, status


class AdAuditError(Exception):
    """Base exception for the auditor."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class AuthenticationError(AdAuditError):
    """Raised when authentication fails."""
    status_code = status.HTTP_401_UNAUTHORIZED


class ResourceNotFoundError(AdAuditError):
    """Raised when a requested resource is not found."""
    status_code = status.HTTP_404_NOT_FOUND


class AuthorizationError(ResourceNotFoundError):
    """Raised when a record belongs to another user.

    Reported as not-found so foreign ids look missing.
    """


class ValidationError(AdAuditError):
    """Raised when input validation fails."""
    pass


class UnsupportedPlatformError(AdAuditError):
    """Raised for a platform outside the supported set."""
    pass


class PlatformNotConfiguredError(AdAuditError):
    """Raised when a known platform has no OAuth credentials configured."""
    status_code = status.HTTP_501_NOT_IMPLEMENTED


class OAuthExchangeError(AdAuditError):
    """Raised when an OAuth code exchange or profile lookup fails."""
    status_code = status.HTTP_502_BAD_GATEWAY


class AnalysisError(AdAuditError):
    """Raised when the LLM analysis call fails."""
    status_code = status.HTTP_502_BAD_GATEWAY


class ReportGenerationError(AdAuditError):
    """Raised when the LLM report call fails."""
    status_code = status.HTTP_502_BAD_GATEWAY


# HTTP exception shortcuts
def unauthorized(detail: str = "Authentication required") -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)
