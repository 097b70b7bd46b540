import logging
import random
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from analytics import summarize
from auth_gateway import SupabaseAuthGateway
from config import Settings
from currencies import is_known_currency
from database import KVStore, create_kv_store
from errors import InvalidArgument, SubSentryError, Unauthorized
from exports import export_filename, to_csv, to_report
from records import RecordStore
from schemas import (
    LoginRequest,
    PreferencesUpdate,
    SignupRequest,
    SubscriptionCreate,
    SubscriptionPatch,
    TokenRequest,
)

logger = logging.getLogger("subsentry")


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


# ---------------------- Dependencies ----------------------

def get_records(request: Request) -> RecordStore:
    return request.app.state.records


def require_client_key(request: Request):
    expected = request.app.state.settings.public_client_key
    if not expected:
        return
    if request.headers.get("Authorization", "") != f"Bearer {expected}":
        raise Unauthorized("Missing or invalid client key")


def serialize_list(subscriptions) -> list:
    return [s.to_json() for s in subscriptions]


# Routes that verify an access token from the body, plus health checks
public = APIRouter()
# Everything else needs the public client key
router = APIRouter(dependencies=[Depends(require_client_key)])


# ---------------------- Health ----------------------

@public.get("/health")
def health():
    return {"status": "ok", "message": "SubSentry API is running"}


@public.get("/health/store")
def store_status(records: RecordStore = Depends(get_records)):
    response = {"backend": "✅ Running", "store": None}
    try:
        response["store"] = records.kv.status()
    except Exception as e:
        logger.exception("Key/value store status check failed")
        response["store"] = {"connection_status": f"❌ Error: {str(e)[:50]}"}
    return response


# ---------------------- Auth ----------------------

@router.post("/auth/signup")
def signup(payload: SignupRequest, records: RecordStore = Depends(get_records)):
    user = records.create_user(payload.name, payload.email, payload.password)
    return {"user": user.to_json(), "message": "Account created successfully"}


@router.post("/auth/login")
def login(payload: LoginRequest, records: RecordStore = Depends(get_records)):
    user, session = records.authenticate(payload.email, payload.password)
    return {"user": user.to_json(), "session": session, "access_token": session.get("access_token")}


@public.post("/auth/google")
def google_auth(payload: TokenRequest, records: RecordStore = Depends(get_records)):
    user = records.login_with_oauth(payload.access_token)
    return {"user": user.to_json(), "access_token": payload.access_token}


@public.post("/auth/verify")
def verify_session(payload: TokenRequest, records: RecordStore = Depends(get_records)):
    user = records.verify_session(payload.access_token)
    return {"user": user.to_json(), "valid": True}


# ---------------------- Users ----------------------

@router.get("/user/{email}")
def get_user(email: str, records: RecordStore = Depends(get_records)):
    return {"user": records.get_user(email).to_json()}


@router.put("/user/{email}/preferences")
def update_preferences(email: str, payload: PreferencesUpdate, records: RecordStore = Depends(get_records)):
    user = records.update_preferred_currency(email, payload.preferred_currency)
    return {"user": user.to_json()}


# ---------------------- Subscriptions ----------------------

@router.get("/subscriptions/{email}")
def list_subscriptions(email: str, records: RecordStore = Depends(get_records)):
    return {"subscriptions": serialize_list(records.list_subscriptions(email))}


@router.post("/subscriptions/{email}")
def add_subscription(email: str, payload: SubscriptionCreate, records: RecordStore = Depends(get_records)):
    subscription, subscriptions = records.add_subscription(email, payload)
    return {"subscription": subscription.to_json(), "subscriptions": serialize_list(subscriptions)}


@router.put("/subscriptions/{email}/{subscription_id}")
def update_subscription(
    email: str, subscription_id: str, payload: SubscriptionPatch, records: RecordStore = Depends(get_records)
):
    subscription, subscriptions = records.update_subscription(email, subscription_id, payload)
    return {"subscription": subscription.to_json(), "subscriptions": serialize_list(subscriptions)}


@router.delete("/subscriptions/{email}/{subscription_id}")
def delete_subscription(email: str, subscription_id: str, records: RecordStore = Depends(get_records)):
    remaining = records.delete_subscription(email, subscription_id)
    return {"message": "Subscription deleted", "subscriptions": serialize_list(remaining)}


@router.delete("/subscriptions/{email}")
def clear_subscriptions(email: str, records: RecordStore = Depends(get_records)):
    records.clear_subscriptions(email)
    return {"message": "All subscriptions deleted"}


# ---------------------- Analytics & export ----------------------

@router.get("/analytics/{email}")
def analytics(
    email: str, request: Request, currency: Optional[str] = None, records: RecordStore = Depends(get_records)
):
    if currency is None:
        user = records.find_user(email)
        currency = user.preferred_currency if user else "USD"
    elif not is_known_currency(currency):
        raise InvalidArgument(f"Unknown currency '{currency}'")

    subscriptions = records.list_subscriptions(email)
    stats = summarize(subscriptions, currency, datetime.now(timezone.utc), request.app.state.rng)
    return {"stats": stats}


@router.get("/export/{email}")
def export(email: str, format: str = "json", records: RecordStore = Depends(get_records)):
    subscriptions = records.list_subscriptions(email)
    today = datetime.now(timezone.utc).date()

    if format == "csv":
        filename = export_filename("subscriptions", today, "csv")
        return Response(
            to_csv(subscriptions),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
    if format == "report":
        filename = export_filename("subscription-report", today, "txt")
        return Response(
            to_report(records.find_user(email), subscriptions, today),
            media_type="text/plain",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
    return {"subscriptions": serialize_list(subscriptions)}


# ---------------------- Error handlers ----------------------

async def handle_domain_error(request: Request, exc: SubSentryError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


async def handle_validation_error(request: Request, exc: RequestValidationError):
    details = []
    missing = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        details.append({"field": field, "message": err.get("msg")})
        if err.get("type") == "missing":
            missing.append(field)
    if missing:
        message = "Missing required fields: " + ", ".join(missing)
    else:
        message = "Invalid request: " + "; ".join(f"{d['field']}: {d['message']}" for d in details)
    return JSONResponse({"error": message, "details": details}, status_code=400)


async def handle_http_error(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return JSONResponse({"error": "Route not found"}, status_code=404)
    return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code)


async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception(f"Server error on {request.method} {request.url.path}")
    return JSONResponse({"error": "Internal server error", "message": str(exc)}, status_code=500)


# ---------------------- App factory ----------------------

def create_app(
    settings: Optional[Settings] = None,
    kv: Optional[KVStore] = None,
    auth: Optional[SupabaseAuthGateway] = None,
    rng: Optional[random.Random] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    The key/value store and the auth gateway are built here, once, and shared
    by every request through app.state.
    """
    settings = settings or Settings.from_env()
    if not settings.public_client_key:
        logger.warning("PUBLIC_CLIENT_KEY not set, client key check is disabled")

    app = FastAPI(title="SubSentry API")
    app.state.settings = settings
    app.state.records = RecordStore(
        kv or create_kv_store(settings),
        auth or SupabaseAuthGateway.from_settings(settings),
    )
    app.state.rng = rng or random.Random()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            elapsed = (time.perf_counter() - start) * 1000
            logger.info(f"{request.method} {request.url.path} -> {status_code} ({elapsed:.1f} ms)")

    app.add_exception_handler(SubSentryError, handle_domain_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(public, prefix=settings.api_prefix)
    app.include_router(router, prefix=settings.api_prefix)
    return app


settings = Settings.from_env()
configure_logging(settings.log_level)
app = create_app(settings)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
