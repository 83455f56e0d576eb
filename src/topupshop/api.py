"""FastAPI REST API for the topup storefront and operator dashboard."""

import hmac
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, Field

from . import __version__
from .asset_store import AssetStore, validate_upload
from .cart import aggregate_cart, render_summary
from .config import AppConfig, get_config
from .config_store import CatalogStore, PaymentStore, SettingsStore
from .errors import (
    AssetNotFoundError,
    AuthenticationError,
    NotFoundError,
    OrderNotFoundError,
    StorageError,
    TopupShopError,
    UploadError,
    ValidationError,
)
from .kv_store import KeyValueStore
from .log import get_logger
from .models import (
    AssetTier,
    Game,
    Order,
    OrderItem,
    OrderStatus,
    Payment,
    SiteSettings,
    StatusPatch,
)
from .order_repository import OrderRepository, sorted_by_timestamp
from .sales import compute_sales

log = get_logger("api")


# --- Pydantic Schemas ---


class CatalogRequest(BaseModel):
    catalog: list[dict[str, Any]]


class PaymentsRequest(BaseModel):
    payments: list[dict[str, Any]]


class SettingsRequest(BaseModel):
    settings: dict[str, Any]


class StatusUpdateRequest(BaseModel):
    """Request body for an operator status change."""

    model_config = ConfigDict(extra="forbid")

    status: str
    notes: Optional[str] = Field(None, description="Operator note shown to the customer")
    note: Optional[str] = Field(None, description="Alias of notes")


class CartSummaryRequest(BaseModel):
    items: list[dict[str, Any]]
    receiptUrl: str = ""


class SuccessResponse(BaseModel):
    success: bool = True


class OrderCreatedResponse(SuccessResponse):
    id: str


class UploadResponse(BaseModel):
    url: str
    id: str
    expiresAt: Optional[str] = None


# --- Application Context ---


@dataclass
class AppContext:
    """Stores and services shared by all requests of one app instance."""

    config: AppConfig
    kv: KeyValueStore
    orders: OrderRepository
    catalog: CatalogStore
    payments: PaymentStore
    settings: SettingsStore
    assets: AssetStore

    @classmethod
    def from_config(cls, config: AppConfig) -> "AppContext":
        kv = KeyValueStore(config.kv_path)
        return cls(
            config=config,
            kv=kv,
            orders=OrderRepository(kv),
            catalog=CatalogStore(kv),
            payments=PaymentStore(kv),
            settings=SettingsStore(kv),
            assets=AssetStore(
                config.assets_path,
                base_url=config.public_base_url,
                signing_secret=config.signing_secret,
                signed_url_ttl=timedelta(seconds=config.signed_url_ttl_seconds),
            ),
        )


# --- Helper Functions ---


def get_context(request: Request) -> AppContext:
    """Return the app's context, building it from the global config on first use."""
    context = getattr(request.app.state, "context", None)
    if context is None:
        context = AppContext.from_config(get_config())
        request.app.state.context = context
    return context


_bearer = HTTPBearer(auto_error=False)


def require_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    context: AppContext = Depends(get_context),
) -> None:
    """Check the shared bearer token."""
    if credentials is None:
        raise AuthenticationError()
    if not hmac.compare_digest(credentials.credentials, context.config.api_token):
        raise AuthenticationError()


def _enrich_from_catalog(items: list[OrderItem], catalog: CatalogStore) -> None:
    """Fill serverLabel and category from the catalog where the client left them out."""
    if all(i.server_label is not None and i.category is not None for i in items):
        return
    games = {g.id: g for g in catalog.load()}
    for item in items:
        game = games.get(item.game_id)
        if game is None:
            continue
        if item.server_label is None:
            item.server_label = game.server_label
        if item.category is None:
            item.category = game.category


def _read_upload(file: Optional[UploadFile], max_bytes: int) -> tuple[bytes, str, str]:
    if file is None:
        raise ValidationError("No file uploaded", "file")
    data = file.file.read()
    validate_upload(len(data), file.content_type, max_bytes)
    return data, file.content_type or "", file.filename or "upload"


# --- FastAPI App ---


# Map exception types to HTTP status codes
ERROR_STATUS_CODES: dict[type, int] = {
    ValidationError: 400,
    AuthenticationError: 401,
    OrderNotFoundError: 404,
    AssetNotFoundError: 404,
    NotFoundError: 404,
    StorageError: 500,
    UploadError: 500,
}


def status_code_for(exc: TopupShopError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return 500


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """
    Build the API.

    Args:
        context: Stores to serve. Built from get_config() on the first
            request when omitted.
    """
    app = FastAPI(
        title="topupshop API",
        description="Storefront and operator dashboard API for digital top-ups",
        version=__version__,
    )
    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=(context.config if context else get_config()).cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        expose_headers=["Content-Length"],
        max_age=600,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        log.info("{} {} {} {:.1f}ms", request.method, request.url.path, response.status_code, elapsed_ms)
        return response

    # --- Global Exception Handlers ---

    @app.exception_handler(TopupShopError)
    async def topupshop_error_handler(request: Request, exc: TopupShopError) -> JSONResponse:
        """Map TopupShopError subclasses to {error} responses."""
        status_code = status_code_for(exc)
        if status_code >= 500:
            log.error("{} {} failed: {}", request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        messages = []
        for err in exc.errors():
            loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
            messages.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
        return JSONResponse(status_code=400, content={"error": "; ".join(messages) or "Invalid request"})

    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:
    auth = [Depends(require_token)]

    # --- Health ---

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok", "timestamp": int(time.time() * 1000)}

    # --- Catalog / Payments / Settings ---

    @app.get("/catalog", dependencies=auth)
    def get_catalog(context: AppContext = Depends(get_context)):
        return {"catalog": [g.to_dict() for g in context.catalog.load()]}

    @app.post("/catalog", dependencies=auth, response_model=SuccessResponse)
    def save_catalog(request: CatalogRequest, context: AppContext = Depends(get_context)):
        games = [Game.from_dict(g, where=f"catalog[{i}]") for i, g in enumerate(request.catalog)]
        context.catalog.save(games)
        return SuccessResponse()

    @app.get("/payments", dependencies=auth)
    def get_payments(context: AppContext = Depends(get_context)):
        return {"payments": [p.to_dict() for p in context.payments.load()]}

    @app.post("/payments", dependencies=auth, response_model=SuccessResponse)
    def save_payments(request: PaymentsRequest, context: AppContext = Depends(get_context)):
        payments = [
            Payment.from_dict(p, where=f"payments[{i}]") for i, p in enumerate(request.payments)
        ]
        context.payments.save(payments)
        return SuccessResponse()

    @app.get("/settings", dependencies=auth)
    def get_settings(context: AppContext = Depends(get_context)):
        return {"settings": context.settings.load().to_dict()}

    @app.post("/settings", dependencies=auth, response_model=SuccessResponse)
    def save_settings(request: SettingsRequest, context: AppContext = Depends(get_context)):
        context.settings.save(SiteSettings.from_dict(request.settings))
        return SuccessResponse()

    # --- Orders ---

    @app.post("/order", dependencies=auth, response_model=OrderCreatedResponse)
    def create_order(payload: dict[str, Any] = Body(...), context: AppContext = Depends(get_context)):
        """Persist a checked-out cart as a pending order."""
        order = Order.from_dict(payload)
        _enrich_from_catalog(order.items, context.catalog)
        order = context.orders.create(order)
        return OrderCreatedResponse(id=order.id)

    @app.get("/orders", dependencies=auth)
    def list_orders(context: AppContext = Depends(get_context)):
        """List all orders, newest first."""
        orders = sorted_by_timestamp(context.orders.list_all())
        return {"orders": [o.to_dict() for o in orders]}

    @app.get("/order/{order_id}", dependencies=auth)
    def get_order(order_id: str, context: AppContext = Depends(get_context)):
        return {"order": context.orders.get(order_id).to_dict()}

    @app.put("/order/{order_id}", dependencies=auth)
    def update_order_status(
        order_id: str,
        request: StatusUpdateRequest,
        context: AppContext = Depends(get_context),
    ):
        """Approve or reject an order, with an optional note."""
        patch = StatusPatch(
            status=OrderStatus.parse(request.status),
            note=request.notes if request.notes is not None else request.note,
        )
        order = context.orders.update_status(order_id, patch)
        return {"success": True, "order": order.to_dict()}

    @app.delete("/orders", dependencies=auth)
    def delete_all_orders(context: AppContext = Depends(get_context)):
        """Delete every order. Irreversible."""
        count = context.orders.delete_all()
        return {"success": True, "count": count}

    # --- Dashboard helpers ---

    @app.post("/cart/summary", dependencies=auth)
    def cart_summary(request: CartSummaryRequest, context: AppContext = Depends(get_context)):
        """Group a cart by account and render the message for the shop."""
        items = [OrderItem.from_dict(i, where=f"items[{n}]") for n, i in enumerate(request.items)]
        _enrich_from_catalog(items, context.catalog)
        summary = aggregate_cart(items)
        result = summary.to_dict()
        result["message"] = render_summary(summary, request.receiptUrl)
        return result

    @app.get("/sales", dependencies=auth)
    def sales_summary(
        month: Optional[str] = Query(default=None, pattern=r"^\d{4}-\d{2}$"),
        context: AppContext = Depends(get_context),
    ):
        """Daily total, monthly total and the last seven sales dates."""
        now = datetime.now(timezone.utc)
        summary = compute_sales(
            context.orders.list_all(), now.date(), month or now.strftime("%Y-%m"), now=now
        )
        return summary.to_dict()

    # --- Assets ---

    @app.post("/upload-receipt", dependencies=auth, response_model=UploadResponse)
    def upload_receipt(
        file: Optional[UploadFile] = File(None),
        context: AppContext = Depends(get_context),
    ):
        """Store a payment receipt privately and return a 7-day signed URL."""
        data, content_type, filename = _read_upload(file, context.config.max_upload_bytes)
        asset = context.assets.store(data, content_type, AssetTier.PRIVATE, filename)
        resolved = context.assets.resolve(asset.id)
        return UploadResponse(
            url=resolved.url,
            id=asset.id,
            expiresAt=resolved.expires_at.isoformat() if resolved.expires_at else None,
        )

    @app.post("/upload-banner", dependencies=auth, response_model=UploadResponse)
    def upload_banner(
        file: Optional[UploadFile] = File(None),
        context: AppContext = Depends(get_context),
    ):
        """Store a banner, logo or QR image publicly and return its permanent URL."""
        data, content_type, filename = _read_upload(file, context.config.max_upload_bytes)
        asset = context.assets.store(data, content_type, AssetTier.PUBLIC, filename)
        return UploadResponse(url=context.assets.resolve(asset.id).url, id=asset.id)

    @app.get("/assets/{tier}/{name}")
    def serve_asset(
        tier: str,
        name: str,
        expires: Optional[int] = Query(default=None),
        signature: Optional[str] = Query(default=None),
        context: AppContext = Depends(get_context),
    ):
        """Serve an asset; private ones need an unexpired signed URL."""
        identifier = f"{tier}/{name}"
        if tier == AssetTier.PRIVATE.value and not context.assets.verify(identifier, expires, signature):
            raise AuthenticationError("Invalid or expired signature")
        data, content_type = context.assets.open(identifier)
        return Response(content=data, media_type=content_type)


app = create_app()
