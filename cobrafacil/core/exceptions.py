from fastapi import HTTPException, status


class NotFoundError(LookupError):
    """Raised when a tenant-scoped record does not exist or is not visible."""


class PermissionDeniedError(PermissionError):
    """Raised when the current account may not perform an action."""


class ConflictError(ValueError):
    """Raised when an operation would violate a business rule on existing data."""


# Maps a service-layer exception to the HTTP error returned by the routes
def http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, LookupError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc) or "Not found")
    if isinstance(exc, PermissionError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc) or "Forbidden")
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


# Exceptions raised by services for caller errors, translated by `http_error`
SERVICE_ERRORS = (LookupError, PermissionError, ValueError)
