import logging
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# .env from the project root regardless of where uvicorn is started
_PROJ_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJ_ROOT / ".env")

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlmodel import Session

from storefront.api.admin import router as admin_router
from storefront.api.coupons import router as coupon_router
from storefront.api.orders import router as order_router
from storefront.core.config import is_cloudinary_configured, is_stripe_configured, settings
from storefront.core.database import engine, init_db
from storefront.core.encryption import EncryptionService
from storefront.core.errors import DecryptionError, PricingError, StorefrontError, ValidationError
from storefront.core.rate_limit import limiter
from storefront.logging import setup_logging
from storefront.services.gateway import StripeGateway
from storefront.services.storage import CloudinaryStorage

setup_logging(level=logging.INFO)
log = logging.getLogger("storefront")


def _cors_origins_list() -> list[str]:
    if not settings.cors_origins or settings.cors_origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in settings.cors_origins.split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    app.state.encryption = EncryptionService.from_settings(settings)
    app.state.gateway = StripeGateway.from_settings(settings)
    app.state.storage = CloudinaryStorage.from_settings(settings)
    log.info(
        "Storefront started: environment=%s stripe=%s cloudinary=%s",
        settings.environment,
        "yes" if is_stripe_configured() else "NO (card checkout disabled)",
        "yes" if is_cloudinary_configured() else "NO (transfer evidence uploads disabled)",
    )
    yield
    app.state.encryption = None
    app.state.gateway = None
    app.state.storage = None


app = FastAPI(
    title="Storefront Orders API",
    description="Digital goods order lifecycle and payment reconciliation",
    lifespan=lifespan,
)
app.state.limiter = limiter


def _error_response(request: Request, status_code: int, detail: str, **extra) -> JSONResponse:
    rid = getattr(request.state, "request_id", None)
    body = {"error": detail, "status_code": status_code, **extra}
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=status_code, content=body)


def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    log.warning("Rate limit exceeded: path=%s limit=%s", request.url.path, exc.detail)
    return _error_response(request, 429, "Too many requests. Please wait a minute.")


app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)


@app.exception_handler(StorefrontError)
def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    if isinstance(exc, (DecryptionError, PricingError)):
        # Operator problems: details stay in the log, generic text to the client
        log.error("%s on %s %s: %s", exc.kind, request.method, request.url.path, exc.message)
        return _error_response(request, exc.status_code, "Internal error. Please contact support.", kind=exc.kind)
    if isinstance(exc, ValidationError):
        return _error_response(request, exc.status_code, exc.message, kind=exc.kind, errors=exc.errors)
    log.info("%s on %s %s: %s", exc.kind, request.method, request.url.path, exc.message)
    return _error_response(request, exc.status_code, exc.message, kind=exc.kind)


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errs = exc.errors()
    log.warning(
        "Request validation error (422): path=%s method=%s detail=%s",
        request.url.path,
        request.method,
        errs,
    )
    first = errs[0] if errs else {}
    loc = [str(p) for p in (first.get("loc") or []) if p != "body"]
    msg = first.get("msg") or "Invalid request."
    user_msg = f"{'.'.join(loc)}: {msg}" if loc else msg
    rid = getattr(request.state, "request_id", None)
    body = {"error": user_msg, "status_code": 422, "detail": _jsonable_errors(errs)}
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=422, content=body)


def _jsonable_errors(errs) -> list[dict]:
    # pydantic puts the raw exception under ctx for value errors
    return [{k: v for k, v in e.items() if k in ("type", "loc", "msg")} for e in errs]


@app.exception_handler(HTTPException)
def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error_response(request, exc.status_code, exc.detail if isinstance(exc.detail, str) else str(exc.detail))


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled exception: path=%s %s", request.url.path, exc)
    return _error_response(request, 500, "Unexpected server error.")


@app.middleware("http")
async def request_id_and_latency(request: Request, call_next):
    request.state.request_id = str(uuid.uuid4())
    start = time.perf_counter()
    response = await call_next(request)
    latency_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Request-ID"] = request.state.request_id
    log.info(
        "request_id=%s method=%s path=%s status=%s latency_ms=%.2f",
        request.state.request_id,
        request.method,
        request.url.path,
        response.status_code,
        latency_ms,
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
# Admin routes first: /order/admin/... must not match /order/{order_id}
app.include_router(admin_router)
app.include_router(order_router)
app.include_router(coupon_router)


@app.get("/health")
def health():
    database = "ok"
    try:
        with Session(engine) as db:
            db.execute(text("SELECT 1"))
    except Exception as e:
        log.warning("Health check database probe failed: %s", e)
        database = "unavailable"
    return {
        "status": "ok" if database == "ok" else "degraded",
        "database": database,
        "stripe_configured": is_stripe_configured(),
        "cloudinary_configured": is_cloudinary_configured(),
    }
