from fastapi import HTTPException, status
from typing import Any, Dict, NoReturn
from astrid.core.error_codes import ErrorCode

class AppException(HTTPException):
    def __init__(
        self,
        *,
        error_code: ErrorCode,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        user_message: str | None = None,
        details: Dict[str, Any] | None = None,
    ):
        super().__init__(
            status_code=status_code,
            detail={"error_code": error_code, "user_message": user_message, "details": details},
        )
        self.error_code = error_code
        self.user_message = user_message
        self.details = details

def raise_error(
    code: ErrorCode,
    status_code: int,
    user_message: str | None = None,
    details: Dict[str, Any] | None = None,
) -> NoReturn:
    raise AppException(error_code=code, status_code=status_code, user_message=user_message, details=details)


class ProviderError(Exception):
    """A tunnel or compute provider rejected a request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AdminApiError(Exception):
    """The admin agent on the VM could not serve a proxied request."""

    def __init__(self, message: str, status_code: int, code: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class AgentUnreachableError(Exception):
    """The VM control plane (SSH) could not be reached or a command failed."""
