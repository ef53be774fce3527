import asyncio
from typing import Any, Dict, List, Optional

from config import settings
from constants import ORDER_STATUSES, TAX_AND_SHIPPING_STL_ID
from errors import FieldError, NotFoundError, ValidationError
from schemas import (
    CustomerOrders,
    OrderGroup,
    OrderLine,
    OrderLineDetail,
    OrderList,
    StlSummary,
)
from services.customers_service import format_customer
from services.parsing import parse_datetime, parse_float, parse_int
from services.pricing import cents_to_units, units_to_cents

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


def format_order_line(row: Dict[str, Any]) -> OrderLine:
    return OrderLine(
        id=row["id"],
        order_id=row.get("order_id") or "",
        customer_id=row.get("customer_id") or "",
        stl_id=row.get("stl_id") or "",
        status=row.get("status") or "",
        price=parse_float(row.get("price")) or 0.0,
        delivery_type=row.get("delivery_type"),
        drop_off_location=row.get("drop_off_location"),
        payment_method=row.get("payment_method"),
        time_of_placement=parse_datetime(row.get("time_of_placement")),
        line_number=parse_int(row.get("line_number")),
    )


def format_stl(row: Dict[str, Any]) -> StlSummary:
    price = parse_int(row.get("price"))
    return StlSummary(
        id=row["id"],
        stl_id=row.get("stl_id"),
        stl_file=row.get("stl_file"),
        material=row.get("material"),
        colour=row.get("colour") or row.get("color"),
        scale=parse_float(row.get("scale")),
        quantity=parse_int(row.get("quantity")),
        infill=parse_int(row.get("infill")),
        quality=row.get("quality"),
        shipping=row.get("shipping"),
        price=cents_to_units(price) if price is not None else None,
        stl_order=row.get("stl_order"),
    )


async def _get_optional(store, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
    try:
        return await asyncio.to_thread(store.get, collection, doc_id)
    except NotFoundError:
        return None


async def _load_stl(store, stl_id: str, cache: Dict[str, Any]) -> Optional[StlSummary]:
    if not stl_id or stl_id == TAX_AND_SHIPPING_STL_ID:
        return None
    if stl_id not in cache:
        row = await _get_optional(store, settings.stls_table, stl_id)
        cache[stl_id] = format_stl(row) if row else None
    return cache[stl_id]


async def _load_customer(store, customer_id: str, cache: Dict[str, Any]):
    if customer_id not in cache:
        row = await _get_optional(store, settings.customers_table, customer_id)
        cache[customer_id] = format_customer(row) if row else None
    return cache[customer_id]


async def _enrich(store, rows: List[Dict[str, Any]]) -> List[OrderLineDetail]:
    customers: Dict[str, Any] = {}
    stls: Dict[str, Any] = {}
    lines: List[OrderLineDetail] = []
    for row in rows:
        line = format_order_line(row)
        lines.append(
            OrderLineDetail(
                **line.model_dump(),
                customer=await _load_customer(store, line.customer_id, customers),
                stl=await _load_stl(store, line.stl_id, stls),
            )
        )
    return lines


def _sum_prices(lines: List[OrderLine]) -> float:
    return cents_to_units(sum(units_to_cents(line.price) for line in lines))


async def get_order_group(store, group_id: str) -> OrderGroup:
    result = await asyncio.to_thread(
        store.list,
        settings.orders_table,
        {"order_id": group_id},
        order_by="line_number",
        descending=False,
    )
    if not result.items:
        raise NotFoundError(f"Order {group_id} not found")
    lines = await _enrich(store, result.items)
    return OrderGroup(
        order_id=group_id,
        lines=lines,
        total=_sum_prices(lines),
        line_count=len(lines),
    )


async def get_customer_orders(store, customer_id: str) -> CustomerOrders:
    row = await _get_optional(store, settings.customers_table, customer_id)
    if row is None:
        raise NotFoundError(f"Customer {customer_id} not found")
    result = await asyncio.to_thread(
        store.list,
        settings.orders_table,
        {"customer_id": customer_id},
        order_by="time_of_placement",
    )
    orders = await _enrich(store, result.items)
    return CustomerOrders(
        customer=format_customer(row),
        orders=orders,
        total=len(orders),
    )


async def list_orders(
    store,
    status_value: Optional[str] = None,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> OrderList:
    if status_value and status_value not in ORDER_STATUSES:
        raise ValidationError([FieldError("status", "Unknown order status")])
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    offset = max(0, offset)
    filters = {"status": status_value} if status_value else None
    result = await asyncio.to_thread(
        store.list,
        settings.orders_table,
        filters,
        limit=limit,
        offset=offset,
        order_by="time_of_placement",
    )
    return OrderList(
        items=[format_order_line(row) for row in result.items],
        total=result.total,
        limit=limit,
        offset=offset,
    )


async def update_order_status(store, line_id: str, status_value: str) -> OrderLine:
    if status_value not in ORDER_STATUSES:
        raise ValidationError(
            [
                FieldError(
                    "status", f"Must be one of: {', '.join(ORDER_STATUSES)}"
                )
            ]
        )
    row = await asyncio.to_thread(
        store.update, settings.orders_table, line_id, {"status": status_value}
    )
    return format_order_line(row)
