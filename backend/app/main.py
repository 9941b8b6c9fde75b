import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.rate_limit import limiter
from app.routes.analytics import router as analytics_router
from app.routes.payments import router as payments_router
from app.routes.stripe_webhook import router as stripe_webhook_router
from app.routes.subscriptions import router as subscriptions_router
from app.routes.tracking import router as tracking_router

logger = logging.getLogger(__name__)

app = FastAPI(title="Donation Checkout API")
logger.info(
    "Startup config: ENV=%s RATE_LIMITING=%s STRIPE_CONFIGURED=%s ADMIN_TOKEN_SET=%s",
    settings.ENV,
    settings.ENABLE_RATE_LIMITING,
    bool(settings.STRIPE_SECRET_KEY),
    bool(settings.ADMIN_API_TOKEN),
)

_ERROR_CODE_BY_STATUS: dict[int, str] = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    422: "VALIDATION_ERROR",
    429: "RATE_LIMITED",
    500: "INTERNAL_ERROR",
}


def _error_code(status_code: int) -> str:
    return _ERROR_CODE_BY_STATUS.get(int(status_code), "HTTP_ERROR")


@app.exception_handler(StarletteHTTPException)
def http_exception_handler(request: Request, exc: StarletteHTTPException):  # noqa: ARG001
    detail = exc.detail
    message: str
    details: dict | None = None

    if isinstance(detail, str):
        message = detail
    elif isinstance(detail, dict):
        msg = detail.get("message")
        message = msg if isinstance(msg, str) and msg else "Request failed"
        det = detail.get("details")
        details = det if isinstance(det, dict) else None
    else:
        message = str(detail) if detail is not None else "Request failed"

    payload: dict = {"error": message, "code": _error_code(exc.status_code)}
    if details:
        payload["details"] = details
    return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))


def _first_validation_message(errors: list[dict]) -> str:
    if not errors:
        return "Invalid request payload"
    first = errors[0]
    loc = [str(part) for part in first.get("loc", ()) if part != "body"]
    msg = str(first.get("msg") or "Invalid value")
    # Pydantic prefixes messages raised from validators with "Value error, ".
    msg = msg.removeprefix("Value error, ")
    if loc and not msg.startswith(loc[-1]):
        return f"{'.'.join(loc)}: {msg}"
    return msg


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError):  # noqa: ARG001
    errors = exc.errors()
    return JSONResponse(
        status_code=422,
        content={
            "error": _first_validation_message(errors),
            "code": "VALIDATION_ERROR",
            "details": {"errors": jsonable_errors(errors)},
        },
    )


def jsonable_errors(errors: list[dict]) -> list[dict]:
    # `ctx` may carry the raw exception object, which is not JSON serializable.
    return [{k: v for k, v in err.items() if k != "ctx"} for err in errors]


if settings.ENABLE_RATE_LIMITING:
    app.state.limiter = limiter
    # Provide our standard error shape for rate limits, instead of slowapi's default.
    app.add_exception_handler(
        RateLimitExceeded,
        lambda request, exc: JSONResponse(  # noqa: ARG005
            status_code=429,
            content={"error": "Too many requests", "code": "RATE_LIMITED"},
        ),
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    # Credentials cannot be combined with a wildcard origin.
    allow_credentials="*" not in settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(tracking_router)
app.include_router(payments_router)
app.include_router(stripe_webhook_router)
app.include_router(analytics_router)
app.include_router(subscriptions_router)

@app.get("/health")
def health_check():
    return {"status": "ok"}
