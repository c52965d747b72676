from __future__ import annotations

from fastapi import HTTPException, status

from telehealth.services.errors import ForbiddenError, NotFoundError, SchedulingError, UnknownStatusError


def http_error(exc: SchedulingError) -> HTTPException:
    if isinstance(exc, ForbiddenError):
        status_code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, NotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, UnknownStatusError):
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=status_code, detail={"code": exc.code, "message": exc.message})
