import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import availability, bookings, misc, payments, resources
from .config import get_settings
from .core.rate_limit import SlidingWindowRateLimiter
from .db.session import Base, engine
from .workers.scheduler import get_scheduler

logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(title="SportBook Reservation API", version="1.0.0")
app.state.rate_limiter = SlidingWindowRateLimiter(
    settings.booking_rate_limit, settings.booking_rate_window_seconds
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(availability.router, prefix="/api/v1")
app.include_router(resources.router, prefix="/api/v1")
app.include_router(bookings.router, prefix="/api/v1")
app.include_router(payments.router, prefix="/api/v1")
app.include_router(misc.router, prefix="/api/v1")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", extra={"path": request.url.path})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


@app.on_event("startup")
async def startup_event() -> None:
    Base.metadata.create_all(bind=engine)
    scheduler = get_scheduler(app.state.rate_limiter)
    scheduler.start()
    app.state.scheduler = scheduler


@app.on_event("shutdown")
async def shutdown_event() -> None:
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler:
        scheduler.shutdown(wait=False)
