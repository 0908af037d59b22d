import logging
import time
import traceback
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# .env is loaded from the project root wherever uvicorn is started from
_PROJ_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJ_ROOT / ".env")

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlmodel import Session, select

from agency.admin import admin_router
from agency.admin.routers.users import create_user
from agency.api.auth import router as auth_router
from agency.api.orders import router as orders_router
from agency.api.payments import router as payments_router
from agency.api.public import router as public_router
from agency.api.seo import router as seo_router
from agency.core.config import settings
from agency.core.database import engine, init_db
from agency.core.rate_limit import get_client_ip, limiter
from agency.logging import setup_logging
from agency.models import ErrorLog, User, UserRole
from agency.services.http_client import VendorUnavailable
from agency.services.payments import PaymentError

setup_logging(level=logging.INFO)
log = logging.getLogger("agency")


def _cors_origins_list() -> list[str]:
    if not settings.cors_origins or settings.cors_origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in settings.cors_origins.split(",") if o.strip()]


def bootstrap_super_admin() -> None:
    """Creates (or promotes) the configured super admin; no-op when not configured."""
    email = settings.bootstrap_admin_email.lower()
    if not email or not settings.bootstrap_admin_password:
        return
    with Session(engine) as db:
        user = db.exec(select(User).where(User.email == email)).first()
        if user is None:
            user = create_user(db, email, settings.bootstrap_admin_password, "Super Admin")
            log.info("bootstrap super admin created: %s", email)
        has_role = db.exec(
            select(UserRole).where(UserRole.user_id == user.id, UserRole.role == "super_admin")
        ).first()
        if not has_role:
            db.add(UserRole(user_id=user.id, role="super_admin"))
            db.commit()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    bootstrap_super_admin()
    log.info("SMTP configured: %s", "yes" if settings.smtp_host.strip() else "NO (invoice e-mails are skipped)")
    yield


app = FastAPI(
    title="Agency API",
    description="Marketing agency site: checkout, payment gateways, super admin settings",
    lifespan=lifespan,
)
app.state.limiter = limiter


def _error_response(request: Request, status_code: int, detail: str, **extra) -> JSONResponse:
    rid = getattr(request.state, "request_id", None)
    body = {**extra, "error": detail, "status_code": status_code}
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=status_code, content=body)


def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    log.warning("rate limit ip=%s path=%s", get_client_ip(request), request.url.path)
    return _error_response(request, 429, "Too many requests. Please wait a minute.")


def _validation_error_message(exc: RequestValidationError) -> str:
    errs = exc.errors()
    if not errs:
        return "Invalid request."
    first = errs[0]
    loc = [str(p) for p in (first.get("loc") or []) if p not in ("body", "query", "path")]
    field = ".".join(loc)
    if first.get("type") == "missing":
        return f"{field} is required" if field else "Request body is required"
    msg = (first.get("msg") or "Invalid request.").removeprefix("Value error, ")
    return f"{field}: {msg}" if field else msg


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    log.info("Request validation error: path=%s detail=%s", request.url.path, exc.errors())
    return _error_response(request, 400, _validation_error_message(exc))


app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)


@app.exception_handler(HTTPException)
def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error_response(request, exc.status_code, exc.detail if isinstance(exc.detail, str) else str(exc.detail))


@app.exception_handler(PaymentError)
def payment_error_handler(request: Request, exc: PaymentError) -> JSONResponse:
    return _error_response(request, exc.status_code, exc.message, ok=False, **exc.extra)


@app.exception_handler(VendorUnavailable)
def vendor_unavailable_handler(request: Request, exc: VendorUnavailable) -> JSONResponse:
    log.warning("Vendor unavailable: path=%s %s", request.url.path, exc)
    return _error_response(request, 502, "Payment provider is unreachable. Please try again.", ok=False)


@app.exception_handler(ValueError)
def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return _error_response(request, 400, str(exc) or "Invalid request.")


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled exception: path=%s %s", request.url.path, exc, exc_info=True)
    try:
        with Session(engine) as db:
            db.add(ErrorLog(
                user_id=None,
                endpoint=request.url.path,
                method=request.method,
                error_message=str(exc)[:2000],
                stack_trace=traceback.format_exc()[:10000],
            ))
            db.commit()
    except Exception as e:
        log.warning("ErrorLog write failed: %s", e)
    return _error_response(request, 500, "Unexpected server error")


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
app.include_router(auth_router)
app.include_router(public_router)
app.include_router(orders_router)
app.include_router(payments_router)
app.include_router(seo_router)
app.include_router(admin_router)


@app.get("/health")
def health():
    return {"status": "ok", "environment": settings.environment, "smtp_configured": bool(settings.smtp_host.strip())}
