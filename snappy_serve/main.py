"""
FastAPI Application Entry Point

Snappy Serve - cafe ordering backend shared by the customer app and the
kitchen dashboard. Both clients poll this API; the order lifecycle engine is
the only writer of order status.

Endpoints:
    - GET/POST /orders, GET/PATCH /orders/{id}: Order store and lifecycle
    - GET /orders/queue: Kitchen attention order
    - POST /orders/{id}/bill, POST /bills: Bill generation
    - GET/POST/PUT/DELETE /menu: Menu catalog
    - GET /reports/daily: Daily report over bills
    - GET/POST /invalidations: Invalidation markers and broadcast
    - GET /health: System health check

Version: 1.0.0
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from snappy_serve.core.config import get_settings, setup_logging
from snappy_serve.core.exceptions import CafeError, ValidationError
from snappy_serve.domain import Bill, OrderItem
from snappy_serve.schemas import (
    BillCreate,
    BillCreateResponse,
    BillResponse,
    DailyReportResponse,
    ErrorResponse,
    HealthResponse,
    InvalidationPublish,
    InvalidationPublishResponse,
    MenuItemCreate,
    MenuItemResponse,
    MenuItemSchema,
    MenuItemUpdate,
    OrderCreate,
    OrderCreateResponse,
    OrderItemSchema,
    OrderResponse,
    OrderStatusUpdate,
    OrderUpdateResponse,
    SeedMenuResponse,
)
from snappy_serve.data import DEFAULT_MENU
from snappy_serve.services import (
    get_invalidation_bus,
    get_lifecycle_engine,
    get_menu_catalog,
    get_report_aggregator,
    hydrate_from_mirror,
)
from snappy_serve.services.invalidation import InvalidationBus, InvalidationEvent
from snappy_serve.services.lifecycle import OrderLifecycleEngine
from snappy_serve.services.menu import MenuCatalog
from snappy_serve.services.reports import ReportAggregator
from snappy_serve.services.storage import get_document_mirror, get_mirror_writer
from snappy_serve.tasks import export_bill_to_excel

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.

    With the mirror enabled, an unreachable store aborts startup
    (``StartupError``) instead of running silently without it.
    """
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    # Build the cached services before the first request can race for them
    get_lifecycle_engine()
    get_report_aggregator()
    logger.info(f"✅ Menu: {len(get_menu_catalog())} items")

    mirror = get_document_mirror()
    if mirror is not None:
        logger.info(f"Waiting up to {settings.mirror_connect_timeout}s for the mirror store...")
        await mirror.connect(timeout=settings.mirror_connect_timeout)
        await hydrate_from_mirror()
        logger.info(f"✅ Mirror Store: {mirror.provider_name}")

    bus = get_invalidation_bus()
    await bus.start()
    logger.info(f"✅ Invalidation Bus: {bus.provider_name}")

    logger.info("✅ Application ready!")
    logger.info("=" * 60)

    yield  # Application runs

    logger.info("Shutting down...")
    writer = get_mirror_writer()
    if writer is not None:
        await writer.flush(timeout=settings.mirror_connect_timeout)
    await bus.close()
    if mirror is not None:
        await mirror.close()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Cafe ordering API shared by the customer app and the kitchen dashboard. "
        "Orders move PENDING -> PREPARING -> READY -> COMPLETED, with an optional "
        "BILL_REQUESTED step."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def to_domain_items(items: Optional[list[OrderItemSchema]]) -> Optional[list[OrderItem]]:
    if items is None:
        return None
    return [OrderItem(**item.model_dump()) for item in items]


async def announce(bus: InvalidationBus, event: InvalidationEvent) -> None:
    """Best-effort broadcast; a failing bus never fails the request."""
    try:
        await bus.publish(event)
    except Exception as e:
        logger.warning(f"Failed to broadcast {event.value}: {e}")


def queue_bill_export(bill: Bill) -> None:
    """Hand a new bill to the Celery ledger export, if enabled."""
    if not settings.bill_export_enabled:
        return
    try:
        export_bill_to_excel.delay(bill.to_document())
    except Exception as e:
        logger.warning(f"Could not queue ledger export for bill {bill.id}: {e}")


async def after_bill_created(bill: Bill, created: bool, bus: InvalidationBus) -> None:
    if not created:
        return
    queue_bill_export(bill)
    await announce(bus, InvalidationEvent.REPORTS_UPDATED)


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"☕ Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
    bus: InvalidationBus = Depends(get_invalidation_bus),
) -> HealthResponse:
    """Verify all system components are operational."""
    mirror = get_document_mirror()
    if mirror is None:
        mirror_status = "disabled"
    else:
        mirror_status = "healthy" if await mirror.health_check() else "unhealthy"

    bus_status = "healthy" if await bus.health_check() else "unhealthy"

    overall = "operational" if all(
        s in ("healthy", "disabled") for s in [mirror_status, bus_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        environment=settings.env_mode.value,
        orders=len(await engine.list_orders()),
        bills=len(await engine.list_bills()),
        mirror=mirror_status,
        invalidation_bus=f"{bus.provider_name}: {bus_status}",
        timestamp=datetime.now().isoformat(),
    )


# =============================================================================
# ORDER ENDPOINTS
# =============================================================================

@app.get(
    "/orders",
    response_model=list[OrderResponse],
    tags=["Orders"],
    summary="List Orders",
)
async def list_orders(
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> list[OrderResponse]:
    """Full snapshot of every order, no filtering."""
    return [OrderResponse.model_validate(o) for o in await engine.list_orders()]


@app.get(
    "/orders/queue",
    response_model=list[OrderResponse],
    tags=["Orders"],
    summary="Kitchen Queue",
)
async def kitchen_queue(
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> list[OrderResponse]:
    """Active orders, BILL_REQUESTED first, then oldest first."""
    return [OrderResponse.model_validate(o) for o in await engine.kitchen_queue()]


@app.get(
    "/orders/{order_id}",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def get_order(
    order_id: str,
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> OrderResponse:
    """Get a specific order by ID."""
    return OrderResponse.model_validate(await engine.get_order(order_id))


@app.post(
    "/orders",
    response_model=OrderCreateResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Place Order",
)
async def create_order(
    order_data: OrderCreate,
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> OrderCreateResponse:
    """
    Place a new order.

    The server assigns id, createdAt and the PENDING status.
    """
    logger.info(f"Creating order for: {order_data.customer_name or 'Guest'}")
    order = await engine.create_order(
        items=to_domain_items(order_data.items),
        table_number=order_data.table_number,
        customer_name=order_data.customer_name,
        total_amount=order_data.total_amount,
    )
    return OrderCreateResponse(order_id=order.id)


@app.patch(
    "/orders/{order_id}",
    response_model=OrderUpdateResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Advance Order Status",
)
async def update_order_status(
    order_id: str,
    update: OrderStatusUpdate,
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> OrderUpdateResponse:
    """Move an order to its next status; illegal moves answer 409."""
    order = await engine.transition(order_id, update.status)
    return OrderUpdateResponse(order=OrderResponse.model_validate(order))


@app.post(
    "/orders/{order_id}/bill",
    response_model=BillCreateResponse,
    responses=ERROR_RESPONSES,
    tags=["Bills"],
    summary="Bill And Complete Order",
)
async def bill_order(
    order_id: str,
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
    bus: InvalidationBus = Depends(get_invalidation_bus),
) -> BillCreateResponse:
    """Generate the bill of a READY order and complete it. Idempotent."""
    bill, created = await engine.generate_bill(order_id)
    await after_bill_created(bill, created, bus)
    return BillCreateResponse(bill=BillResponse.model_validate(bill), created=created)


# =============================================================================
# BILL ENDPOINTS
# =============================================================================

@app.post(
    "/bills",
    response_model=BillCreateResponse,
    responses=ERROR_RESPONSES,
    tags=["Bills"],
    summary="Generate Bill",
)
async def create_bill(
    bill_data: BillCreate,
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
    bus: InvalidationBus = Depends(get_invalidation_bus),
) -> BillCreateResponse:
    """
    Generate a bill.

    With ``orderId`` this is the same idempotent operation as
    ``POST /orders/{id}/bill``. Without it, the posted items are billed as a
    standalone bill.
    """
    if bill_data.order_id:
        bill, created = await engine.generate_bill(bill_data.order_id)
    else:
        bill = await engine.create_ad_hoc_bill(
            items=to_domain_items(bill_data.items),
            table_number=bill_data.table_number,
            customer_name=bill_data.customer_name,
        )
        created = True
    await after_bill_created(bill, created, bus)
    return BillCreateResponse(bill=BillResponse.model_validate(bill), created=created)


@app.get(
    "/bills",
    response_model=list[BillResponse],
    tags=["Bills"],
)
async def list_bills(
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> list[BillResponse]:
    return [BillResponse.model_validate(b) for b in await engine.list_bills()]


@app.get(
    "/bills/{bill_id}",
    response_model=BillResponse,
    responses=ERROR_RESPONSES,
    tags=["Bills"],
)
async def get_bill(
    bill_id: str,
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> BillResponse:
    return BillResponse.model_validate(await engine.get_bill(bill_id))


# =============================================================================
# MENU ENDPOINTS
# =============================================================================

@app.get(
    "/menu",
    response_model=dict[str, list[MenuItemSchema]],
    tags=["Menu"],
)
async def get_menu(
    catalog: MenuCatalog = Depends(get_menu_catalog),
) -> dict[str, list[MenuItemSchema]]:
    """Menu grouped by category."""
    return {
        category: [MenuItemSchema.model_validate(item) for item in items]
        for category, items in catalog.grouped().items()
    }


@app.post(
    "/menu",
    response_model=MenuItemResponse,
    responses=ERROR_RESPONSES,
    tags=["Menu"],
)
async def add_menu_item(
    item_data: MenuItemCreate,
    catalog: MenuCatalog = Depends(get_menu_catalog),
    bus: InvalidationBus = Depends(get_invalidation_bus),
) -> MenuItemResponse:
    item = catalog.add(**item_data.model_dump())
    await announce(bus, InvalidationEvent.MENU_UPDATED)
    return MenuItemResponse(item=MenuItemSchema.model_validate(item))


@app.put(
    "/menu/{item_id}",
    response_model=MenuItemResponse,
    responses=ERROR_RESPONSES,
    tags=["Menu"],
)
async def update_menu_item(
    item_id: str,
    item_data: MenuItemUpdate,
    catalog: MenuCatalog = Depends(get_menu_catalog),
    bus: InvalidationBus = Depends(get_invalidation_bus),
) -> MenuItemResponse:
    item = catalog.update(item_id, **item_data.model_dump())
    await announce(bus, InvalidationEvent.MENU_UPDATED)
    return MenuItemResponse(item=MenuItemSchema.model_validate(item))


@app.delete(
    "/menu/{item_id}",
    response_model=MenuItemResponse,
    responses=ERROR_RESPONSES,
    tags=["Menu"],
)
async def delete_menu_item(
    item_id: str,
    catalog: MenuCatalog = Depends(get_menu_catalog),
    bus: InvalidationBus = Depends(get_invalidation_bus),
) -> MenuItemResponse:
    item = catalog.remove(item_id)
    await announce(bus, InvalidationEvent.MENU_UPDATED)
    return MenuItemResponse(item=MenuItemSchema.model_validate(item))


@app.post(
    "/admin/seed-menu",
    response_model=SeedMenuResponse,
    tags=["Menu"],
    summary="Seed Menu (Development)",
)
async def seed_menu(
    catalog: MenuCatalog = Depends(get_menu_catalog),
    bus: InvalidationBus = Depends(get_invalidation_bus),
) -> SeedMenuResponse:
    """Upsert the default menu. Development mode only."""
    if not settings.is_development:
        raise HTTPException(
            status_code=403,
            detail="Menu seeding only available in development mode"
        )
    inserted = catalog.seed(DEFAULT_MENU)
    await announce(bus, InvalidationEvent.MENU_UPDATED)
    return SeedMenuResponse(inserted=inserted)


# =============================================================================
# REPORT ENDPOINTS
# =============================================================================

@app.get(
    "/reports/daily",
    response_model=DailyReportResponse,
    responses=ERROR_RESPONSES,
    tags=["Reports"],
)
async def daily_report(
    date: Optional[str] = Query(None, description="YYYY-MM-DD, defaults to today"),
    reports: ReportAggregator = Depends(get_report_aggregator),
) -> DailyReportResponse:
    """Revenue, customers, top items and hourly breakdown for one day."""
    return DailyReportResponse.model_validate(await reports.daily_report(date))


# =============================================================================
# INVALIDATION ENDPOINTS
# =============================================================================

@app.get("/invalidations", tags=["Invalidation"])
async def invalidation_markers(
    bus: InvalidationBus = Depends(get_invalidation_bus),
) -> dict[str, int]:
    """Latest publish time per event type, for clients that only poll."""
    return bus.markers()


@app.post(
    "/invalidations",
    response_model=InvalidationPublishResponse,
    responses=ERROR_RESPONSES,
    tags=["Invalidation"],
)
async def publish_invalidation(
    payload: InvalidationPublish,
    bus: InvalidationBus = Depends(get_invalidation_bus),
) -> InvalidationPublishResponse:
    """Broadcast an invalidation on behalf of a client view."""
    at = await bus.publish(payload.event)
    return InvalidationPublishResponse(event=payload.event, at=at)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

def error_response(status_code: int, error: str, detail: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail).model_dump(),
    )


@app.exception_handler(CafeError)
async def cafe_error_handler(request: Request, exc: CafeError) -> JSONResponse:
    """Map the error taxonomy to structured failures."""
    if exc.status_code >= 500:
        logger.error(f"{exc.error_type} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.error_type} on {request.url.path}: {exc.message}")
    return error_response(exc.status_code, exc.error_type, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies get the same envelope as ValidationError."""
    errors = [
        f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}"
        for err in exc.errors()
    ]
    return error_response(400, ValidationError.__name__, "; ".join(errors))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, "HTTPException", exc.detail)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")
    return error_response(
        500,
        "Internal Server Error",
        str(exc) if settings.debug else "An unexpected error occurred",
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "snappy_serve.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
