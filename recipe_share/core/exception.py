from fastapi import HTTPException
from typing import Any, Optional
from recipe_share.schema.result import ErrorCategory


class CustomException(HTTPException):
    """Base exception class for all custom application exceptions"""

    def __init__(
        self,
        message: str,
        status_code: int,
        category: ErrorCategory,
        headers: Optional[dict] = None
    ):
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.category = category

    def __str__(self) -> str:
        return self.detail


class ResourceNotFoundException(CustomException):
    """Exception raised when a requested resource is not found"""

    def __init__(self, resource_name: str, resource_id: Optional[Any] = None):
        if resource_id:
            message = f"{resource_name} with ID '{resource_id}' was not found."
        else:
            message = f"{resource_name} was not found."

        super().__init__(
            message=message,
            status_code=404,
            category=ErrorCategory.NOT_FOUND
        )


class AuthorizationException(CustomException):
    """Exception raised when a household has no access to a resource"""

    def __init__(
        self,
        permission: Optional[str] = None,
        message: Optional[str] = None,
        status_code: int = 403
    ):
        if message:
            error_message = message
        elif permission:
            error_message = f"You do not have permission to perform this action. Required permission: {permission}"
        else:
            error_message = "You do not have permission to perform this action."

        super().__init__(
            message=error_message,
            status_code=status_code,
            category=ErrorCategory.AUTHORIZATION
        )


class ConflictException(CustomException):
    """
    Exception raised when a write collides with a uniqueness constraint.

    Usually two requests forking the same source for the same household;
    callers should look the fork up again rather than treat this as a logic error.
    """

    def __init__(self, message: str = "The resource was modified by a concurrent request."):
        super().__init__(
            message=message,
            status_code=409,
            category=ErrorCategory.RESOURCE_CONFLICT
        )


class StoreException(CustomException):
    """Exception raised for connectivity, timeout or other database failures"""

    retryable = True

    def __init__(self, message: str = "The database is currently unavailable."):
        super().__init__(
            message=message,
            status_code=503,
            category=ErrorCategory.STORE
        )


class BadRequestException(CustomException):
    """Exception raised for malformed or invalid requests"""

    def __init__(self, message: str = "The request is invalid or malformed."):
        super().__init__(
            message=message,
            status_code=400,
            category=ErrorCategory.BAD_REQUEST
        )
