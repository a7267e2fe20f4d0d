"""
Error kinds raised by the services.

Each one is an ``HTTPException`` so a service can raise it directly and
FastAPI turns it into the matching response.
"""
from fastapi import HTTPException, status


class NotFound(HTTPException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class InvalidTransition(HTTPException):
    def __init__(self, detail: str = "Transition not allowed from the current status"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class ValidationError(HTTPException):
    def __init__(self, detail: str = "Invalid input"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class PermissionDenied(HTTPException):
    def __init__(self, detail: str = "You are not allowed to perform this action"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class UpstreamFailure(HTTPException):
    def __init__(self, detail: str = "An upstream service failed"):
        super().__init__(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)
