import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from ..core.errors import (
    AccessDenied,
    BatchConflict,
    BookingError,
    ExternalFailure,
    HolidayClosed,
    NotFound,
    ReservationConflict,
    StateConflict,
    ValidationFailed,
)
from ..core.rate_limit import SlidingWindowRateLimiter
from ..core.security import decode_user_id

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)

ERROR_STATUS = (
    (ValidationFailed, status.HTTP_400_BAD_REQUEST),
    (AccessDenied, status.HTTP_403_FORBIDDEN),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (ReservationConflict, status.HTTP_409_CONFLICT),
    (HolidayClosed, status.HTTP_409_CONFLICT),
    (StateConflict, status.HTTP_409_CONFLICT),
    (ExternalFailure, status.HTTP_502_BAD_GATEWAY),
)


def http_error(exc: BookingError) -> HTTPException:
    if isinstance(exc, BatchConflict):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(exc), "conflicts": exc.conflicts},
        )
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    logger.error("Unmapped booking error", exc_info=exc)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error"
    )


def get_optional_user_id(
    token: Annotated[str | None, Depends(oauth2_scheme)],
) -> int | None:
    if not token:
        return None
    user_id = decode_user_id(token)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    return user_id


def get_current_user_id(
    user_id: Annotated[int | None, Depends(get_optional_user_id)],
) -> int:
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return user_id


def get_rate_limiter(request: Request) -> SlidingWindowRateLimiter:
    return request.app.state.rate_limiter


def enforce_booking_rate_limit(
    request: Request,
    limiter: Annotated[SlidingWindowRateLimiter, Depends(get_rate_limiter)],
    user_id: Annotated[int | None, Depends(get_optional_user_id)],
) -> None:
    if user_id is not None:
        key = f"user:{user_id}"
    else:
        key = f"ip:{request.client.host if request.client else 'unknown'}"
    if not limiter.hit(key):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many booking attempts, please slow down",
        )
