"""
Tailor Ops API
HTTP surface over the lifecycle engine, aggregators and directory.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .core.exceptions import (
    InvalidOperation,
    InvalidTransition,
    NotFound,
    StorageError,
    TailorOpsError,
    ValidationError,
)
from .core.schemas import (
    ActivityFeed,
    CustomerIn,
    CustomerOut,
    CustomerUpdate,
    FinancialSummary,
    ItemInput,
    ItemOut,
    ItemTransitionRequest,
    OrderCreate,
    OrderOut,
    OrderTransitionRequest,
    PayoutRequest,
    ScheduleDeliveryRequest,
    TailorIn,
    TailorOut,
    TailorUpdate,
)
from .core.statuses import ItemStatus, OrderStatus
from .logging_conf import configure_logging
from .services import (
    ActivityService,
    DatabaseManager,
    DirectoryService,
    FinancialService,
    LifecycleService,
    initialize_database,
)

logger = logging.getLogger(__name__)

# Ordered most specific first: NotFound is a ValidationError
STATUS_CODES = [
    (NotFound, 404),
    (ValidationError, 422),
    (InvalidTransition, 409),
    (InvalidOperation, 409),
    (StorageError, 503),
]


def status_code_for(exc: TailorOpsError) -> int:
    for exc_cls, code in STATUS_CODES:
        if isinstance(exc, exc_cls):
            return code
    return 500


class Services:
    def __init__(self, db: DatabaseManager):
        self.db = db
        self.directory = DirectoryService(db)
        self.lifecycle = LifecycleService(db)
        self.financials = FinancialService(db)
        self.activity = ActivityService(db)


def create_app(db: Optional[DatabaseManager] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        owned = app.state.services is None
        if owned:
            settings = get_settings()
            configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)
            app.state.services = Services(initialize_database())
        logger.info("Tailor Ops API started")
        yield
        # Shutdown
        if owned:
            app.state.services.db.dispose()
        logger.info("Tailor Ops API stopped")

    app = FastAPI(
        title="Tailor Ops API",
        description="Orders, items, tailors and customers for an alterations service",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = Services(db) if db is not None else None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(TailorOpsError)
    async def tailor_ops_error_handler(request: Request, exc: TailorOpsError):
        status_code = status_code_for(exc)
        logger.info(
            "request_rejected",
            extra={"path": request.url.path, "error": exc.code, "status_code": status_code},
        )
        return JSONResponse(
            status_code=status_code,
            content={"status": "error", "error": exc.code, "reason": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={"status": "error", "error": ValidationError.code, "reason": str(exc.errors())},
        )

    def services() -> Services:
        return app.state.services

    # Health check endpoint
    @app.get("/health")
    async def health_check() -> Dict[str, Any]:
        return {"status": "healthy", "service": "tailor_ops", "timestamp": datetime.now().isoformat()}

    # Customers
    @app.post("/customers", response_model=CustomerOut, status_code=201)
    def create_customer(payload: CustomerIn):
        return services().directory.create_customer(payload)

    @app.get("/customers", response_model=List[CustomerOut])
    def list_customers():
        return services().directory.list_customers()

    @app.get("/customers/{customer_id}", response_model=CustomerOut)
    def get_customer(customer_id: int):
        return services().directory.get_customer(customer_id)

    @app.patch("/customers/{customer_id}", response_model=CustomerOut)
    def update_customer(customer_id: int, payload: CustomerUpdate):
        return services().directory.update_customer(customer_id, payload)

    @app.delete("/customers/{customer_id}")
    def delete_customer(customer_id: int):
        services().directory.delete_customer(customer_id)
        return {"status": "deleted"}

    # Tailors
    @app.post("/tailors", response_model=TailorOut, status_code=201)
    def create_tailor(payload: TailorIn):
        return services().directory.create_tailor(payload)

    @app.get("/tailors", response_model=List[TailorOut])
    def list_tailors():
        return services().directory.list_tailors()

    @app.get("/tailors/{tailor_id}", response_model=TailorOut)
    def get_tailor(tailor_id: int):
        return services().directory.get_tailor(tailor_id)

    @app.patch("/tailors/{tailor_id}", response_model=TailorOut)
    def update_tailor(tailor_id: int, payload: TailorUpdate):
        return services().directory.update_tailor(tailor_id, payload)

    # Orders
    @app.post("/orders", response_model=OrderOut, status_code=201)
    def create_order(payload: OrderCreate):
        return services().lifecycle.create_order(payload.customer_id, payload.scheduled_visit, payload.notes)

    @app.get("/orders", response_model=List[OrderOut])
    def list_orders(status: Optional[OrderStatus] = None, customer_id: Optional[int] = None):
        return services().lifecycle.list_orders(status, customer_id=customer_id)

    @app.get("/orders/{order_id}", response_model=OrderOut)
    def get_order(order_id: int):
        return services().lifecycle.get_order(order_id)

    @app.post("/orders/{order_id}/transition", response_model=OrderOut)
    def transition_order(order_id: int, payload: OrderTransitionRequest):
        args = payload.model_dump(exclude={"status"})
        return services().lifecycle.transition_order(order_id, payload.status, args)

    @app.post("/orders/{order_id}/items", response_model=OrderOut)
    def add_items(order_id: int, items: List[ItemInput]):
        return services().lifecycle.add_items_to_order(order_id, items)

    @app.get("/orders/{order_id}/financials")
    def order_financials(order_id: int):
        return _financials_payload(services().financials.get_financial_summary(order_id))

    # Items
    @app.get("/items", response_model=List[ItemOut])
    def list_items(status: Optional[ItemStatus] = None, tailor_id: Optional[int] = None):
        return services().lifecycle.list_items(status, tailor_id=tailor_id)

    @app.get("/items/{item_id}", response_model=ItemOut)
    def get_item(item_id: int):
        return services().lifecycle.get_item(item_id)

    @app.post("/items/{item_id}/transition", response_model=ItemOut)
    def transition_item(item_id: int, payload: ItemTransitionRequest):
        args = payload.model_dump(exclude={"status"})
        return services().lifecycle.transition_item(item_id, payload.status, args)

    @app.put("/items/{item_id}/scheduled-delivery", response_model=ItemOut)
    def schedule_delivery(item_id: int, payload: ScheduleDeliveryRequest):
        return services().lifecycle.schedule_delivery(item_id, payload.scheduled_delivery)

    @app.put("/items/{item_id}/payout", response_model=ItemOut)
    def update_payout(item_id: int, payload: PayoutRequest):
        return services().lifecycle.update_payout(item_id, payload.tailor_payout)

    @app.get("/items/{item_id}/financials")
    def item_financials(item_id: int):
        return _financials_payload(services().financials.get_item_financials(item_id))

    # Dashboard
    @app.get("/dashboard/activity", response_model=ActivityFeed)
    def activity_feed(now: Optional[datetime] = None):
        return services().activity.get_activity_feed(now)

    return app


def _financials_payload(summary: FinancialSummary) -> Dict[str, Any]:
    return {
        **summary.model_dump(),
        "display": {
            "customer_total": summary.customer_total_display,
            "tailor_payout_total": summary.tailor_payout_total_display,
            "net_profit": summary.net_profit_display,
        },
    }


app = create_app()


if __name__ == "__main__":
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)

    uvicorn.run(
        "tailor_ops.api:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
