from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from services.payment_service.gateway import MpesaGateway, get_payment_gateway
from shared.config.database import get_db
from shared.errors import InvalidInput
from shared.security import ORDER_RATE_LIMIT, limiter
from shared.security.dependencies import (
    get_current_user,
    get_optional_user,
    verify_internal_api_key,
)
from .schemas import (
    OrderCreate,
    OrderCreatedResponse,
    OrderEnvelope,
    OrderListResponse,
    StatusUpdate,
)
from .service import OrderService

router = APIRouter(prefix="/orders", tags=["Orders"])

@router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "order", "status": "running"}

@router.post("/", response_model=OrderCreatedResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(ORDER_RATE_LIMIT)
async def create_order(
    request: Request,                            # slowapi reads the caller from here
    payload: OrderCreate,
    user_id: int | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
    gateway: MpesaGateway = Depends(get_payment_gateway),
):
    # Prefer the authenticated user; body.buyer is accepted for unauthenticated clients
    buyer_id = user_id if user_id is not None else payload.buyer
    if buyer_id is None:
        raise InvalidInput("Buyer is required")
    return await OrderService.create_order(db, buyer_id, payload, gateway)

@router.get("/buyer/{buyer_id}", response_model=OrderListResponse)
async def get_buyer_orders(
    buyer_id: int,
    user_id: int = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    orders = await OrderService.list_buyer_orders(db, buyer_id, user_id)
    return {"success": True, "orders": orders}

@router.get("/seller/{seller_id}", response_model=OrderListResponse)
async def get_seller_orders(
    seller_id: int,
    user_id: int = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    orders = await OrderService.list_seller_orders(db, seller_id, user_id)
    return {"success": True, "orders": orders}

@router.put("/cancel/{order_id}", response_model=OrderEnvelope)
async def cancel_order(
    order_id: int,
    user_id: int = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await OrderService.cancel_order(db, order_id, user_id)
    return {"success": True, "order": order}

@router.get("/{order_id}", response_model=OrderEnvelope)
async def get_order(
    order_id: int,
    user_id: int = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await OrderService.get_order(db, order_id, user_id)
    return {"success": True, "order": order}

# Fulfilment/back-office only
@router.put(
    "/{order_id}",
    response_model=OrderEnvelope,
    dependencies=[Depends(verify_internal_api_key)],
)
async def update_status(order_id: int, payload: StatusUpdate, db: AsyncSession = Depends(get_db)):
    order = await OrderService.update_status(db, order_id, payload.status)
    return {"success": True, "order": order}
