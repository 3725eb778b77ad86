import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Settings, load_settings
from database import init_db
from errors import BookingValidationError, DuplicateBookingError, StorageError
from models import BookingPayload, booking_to_json
from policy import SlotPolicy
from store import BookingStore, SqlBookingStore, make_store

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
ALLOWED_METHODS = "GET, POST, DELETE"

logger = logging.getLogger(__name__)
router = APIRouter()


def get_store(request: Request) -> BookingStore:
    return request.app.state.store


def get_policy(request: Request) -> SlotPolicy:
    return request.app.state.policy


def _validation_message(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or 'body'}: {err['msg']}" for err in exc.errors()
    )


@router.get("/")
async def root():
    return {"message": "Booking board backend running"}


# --- GET /bookings?weekKey= ---
@router.get("/bookings")
async def list_bookings(
    week_key: Optional[str] = Query(None, alias="weekKey"),
    store: BookingStore = Depends(get_store),
) -> List[Dict[str, Any]]:
    if not week_key:
        raise BookingValidationError("Missing weekKey")
    bookings = await store.list_for_week(week_key)
    return [booking_to_json(b) for b in bookings]


# --- POST /bookings ---
@router.post("/bookings", status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: Request,
    week_key: Optional[str] = Query(None, alias="weekKey"),
    store: BookingStore = Depends(get_store),
    policy: SlotPolicy = Depends(get_policy),
):
    try:
        body = await request.json()
    except ValueError:
        raise BookingValidationError("Request body must be JSON") from None
    if not isinstance(body, dict):
        raise BookingValidationError("Request body must be a JSON object")

    week_key = week_key or body.get("weekKey")
    if not week_key:
        raise BookingValidationError("Missing weekKey")

    try:
        payload = BookingPayload.model_validate({**body, "weekKey": week_key})
    except ValidationError as exc:
        raise BookingValidationError(_validation_message(exc)) from None

    # The server picks the id; anything the client sent is ignored
    booking = await policy.submit(store, payload.to_draft())
    return JSONResponse(booking_to_json(booking), status_code=status.HTTP_201_CREATED)


# --- DELETE /bookings?id=&weekKey= and DELETE /bookings/{id} ---
@router.delete("/bookings")
async def delete_booking_by_query(
    booking_id: Optional[str] = Query(None, alias="id"),
    week_key: Optional[str] = Query(None, alias="weekKey"),
    store: BookingStore = Depends(get_store),
):
    # weekKey is accepted for older clients; ids are unique across weeks
    if booking_id:
        await store.delete(booking_id)
    return {"ok": True}


@router.delete("/bookings/{booking_id}")
async def delete_booking(booking_id: str, store: BookingStore = Depends(get_store)):
    await store.delete(booking_id)
    return {"ok": True}


# --- Error mapping ---
async def _http_error_handler(request: Request, exc: StarletteHTTPException):
    # Allow lists every method /bookings answers, not only the first matching route
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED and request.url.path.rstrip("/") == "/bookings":
        return JSONResponse(
            {"error": f"Method {request.method} Not Allowed"},
            status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
            headers={"Allow": ALLOWED_METHODS},
        )
    return await http_exception_handler(request, exc)


async def _duplicate_handler(request: Request, exc: DuplicateBookingError):
    return JSONResponse({"error": exc.message}, status_code=status.HTTP_409_CONFLICT)


async def _validation_handler(request: Request, exc: BookingValidationError):
    return JSONResponse({"error": exc.message}, status_code=status.HTTP_400_BAD_REQUEST)


async def _storage_handler(request: Request, exc: StorageError):
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse({"error": exc.message}, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


def create_app(settings: Optional[Settings] = None, store: Optional[BookingStore] = None) -> FastAPI:
    # 1. Configuration
    settings = settings or load_settings(default_backend="memory")
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)

    app = FastAPI(title="Weekly Assignment Board")
    app.state.settings = settings
    app.state.store = store or make_store(settings)
    app.state.policy = SlotPolicy.from_settings(settings)

    # 2. Routes and error mapping
    app.include_router(router)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(DuplicateBookingError, _duplicate_handler)
    app.add_exception_handler(BookingValidationError, _validation_handler)
    app.add_exception_handler(StorageError, _storage_handler)

    @app.on_event("startup")
    async def on_startup():
        if isinstance(app.state.store, SqlBookingStore):
            await init_db(app.state.store.engine)
        logger.info("Serving bookings from %s backend", type(app.state.store).__name__)

    @app.on_event("shutdown")
    async def on_shutdown():
        await app.state.store.close()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


app = create_app()
