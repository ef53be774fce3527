from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from auth import get_current_user_id
from deps import get_document_store, get_order_composer
from schemas import (
    ApiResponse,
    CheckoutRequest,
    CustomerOrders,
    OrderGroup,
    OrderLine,
    OrderList,
    OrderReceipt,
    StatusUpdateRequest,
)
from services import orders_service
from services.order_composer import OrderComposer

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post(
    "",
    response_model=ApiResponse[OrderReceipt],
    status_code=status.HTTP_201_CREATED,
)
async def create_order(
    payload: CheckoutRequest,
    composer: OrderComposer = Depends(get_order_composer),
) -> ApiResponse[OrderReceipt]:
    result = await composer.create_order(payload)
    receipt = result.to_receipt()
    return ApiResponse[OrderReceipt](
        message=f"Order created successfully with {receipt.order_count} item(s)",
        data=receipt,
    )


@router.get("", response_model=ApiResponse[OrderList])
async def list_orders(
    status_value: Optional[str] = Query(default=None, alias="status"),
    limit: int = Query(default=orders_service.DEFAULT_PAGE_SIZE, ge=1),
    offset: int = Query(default=0, ge=0),
    user_id: str = Depends(get_current_user_id),
    store=Depends(get_document_store),
) -> ApiResponse[OrderList]:
    orders = await orders_service.list_orders(store, status_value, limit, offset)
    return ApiResponse[OrderList](message="Orders fetched successfully", data=orders)


@router.get("/customer/{customer_id}", response_model=ApiResponse[CustomerOrders])
async def read_customer_orders(
    customer_id: str,
    store=Depends(get_document_store),
) -> ApiResponse[CustomerOrders]:
    orders = await orders_service.get_customer_orders(store, customer_id)
    return ApiResponse[CustomerOrders](
        message="Customer orders fetched successfully", data=orders
    )


@router.patch("/lines/{line_id}/status", response_model=ApiResponse[OrderLine])
async def update_status(
    line_id: str,
    payload: StatusUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    store=Depends(get_document_store),
) -> ApiResponse[OrderLine]:
    line = await orders_service.update_order_status(store, line_id, payload.status)
    return ApiResponse[OrderLine](message="Order status updated", data=line)


@router.get("/{group_id}", response_model=ApiResponse[OrderGroup])
async def read_order_group(
    group_id: str,
    store=Depends(get_document_store),
) -> ApiResponse[OrderGroup]:
    group = await orders_service.get_order_group(store, group_id)
    return ApiResponse[OrderGroup](message="Order fetched successfully", data=group)
