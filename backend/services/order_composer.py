"""Checkout composition.

A checkout turns one customer block, N STL entries and shared order details
into a customer record (found or created), one STL record and one order line
per entry, and optionally one synthetic ``tax_and_shipping`` line carrying the
part of the declared total not covered by the priced entries. All lines share
one generated order-group id.

Steps run in order: validate, resolve customer, persist lines, link STL
records back to the group, build the receipt. Nothing is rolled back: a failed
line or link is recorded on the result and the checkout carries on.
"""

import asyncio
import logging
import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from config import settings
from constants import (
    ALLOWED_COLOURS,
    ALLOWED_MATERIALS,
    DEFAULT_DELIVERY_TYPE,
    DEFAULT_PAYMENT_METHOD,
    DEFAULT_QUALITY,
    DEFAULT_SHIPPING,
    INITIAL_ORDER_STATUS,
    MAX_ADDRESS_LENGTH,
    TAX_AND_SHIPPING_STL_ID,
)
from errors import FieldError, UpstreamError, ValidationError
from schemas import CheckoutRequest, LineFailure, LinkedStl, OrderReceipt, StlLineItem
from services.customers_service import (
    ResolvedCustomer,
    find_or_create_customer,
    normalize_phone,
)
from services.parsing import to_number
from services.pricing import (
    PricingEngine,
    cents_to_units,
    effective_print_options,
    units_to_cents,
)

logger = logging.getLogger("print-orders")

CUSTOMER_FIELDS = ("first_name", "last_name", "email", "phone", "delivery_address")
NUMERIC_FIELDS = (
    ("scale", float),
    ("cost", float),
    ("quantity", int),
    ("infill", int),
    ("file_size", int),
    ("weight", float),
)
REQUIRED_NUMERIC_FIELDS = ("scale", "cost")
ORDER_ID_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_id() -> str:
    timestamp = int(time.time() * 1000)
    suffix = "".join(random.choices(ORDER_ID_ALPHABET, k=6))
    return f"ORD_{timestamp}_{suffix}"


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _validate_customer(request: CheckoutRequest) -> List[FieldError]:
    customer = request.customerData
    if customer is None:
        return [FieldError("customerData", "Customer data is required")]
    errors: List[FieldError] = []
    for name in CUSTOMER_FIELDS:
        if _is_blank(getattr(customer, name)):
            errors.append(FieldError(f"customerData.{name}", "Field is required"))
    if not _is_blank(customer.phone) and not normalize_phone(customer.phone):
        errors.append(FieldError("customerData.phone", "Phone must contain at least one digit"))
    if customer.delivery_address and len(customer.delivery_address) > MAX_ADDRESS_LENGTH:
        errors.append(
            FieldError(
                "customerData.delivery_address",
                f"Must be at most {MAX_ADDRESS_LENGTH} characters",
            )
        )
    return errors


def _validate_stl(index: int, item: StlLineItem, pricing: PricingEngine) -> List[FieldError]:
    prefix = f"stlFiles[{index}]"
    errors: List[FieldError] = []
    if _is_blank(item.stl_file):
        errors.append(FieldError(f"{prefix}.stl_file", "File reference is required"))
    if _is_blank(item.material):
        errors.append(FieldError(f"{prefix}.material", "Field is required"))
    elif item.material.strip().lower() not in ALLOWED_MATERIALS:
        errors.append(
            FieldError(
                f"{prefix}.material",
                f"Must be one of: {', '.join(ALLOWED_MATERIALS)}",
            )
        )
    if _is_blank(item.colour):
        errors.append(FieldError(f"{prefix}.colour", "Field is required"))
    elif item.colour.strip().lower() not in ALLOWED_COLOURS:
        errors.append(
            FieldError(
                f"{prefix}.colour",
                f"Must be one of: {', '.join(ALLOWED_COLOURS)}",
            )
        )
    for name, kind in NUMERIC_FIELDS:
        field_name = f"{prefix}.{name}"
        try:
            value = to_number(getattr(item, name), kind)
        except ValueError as exc:
            errors.append(FieldError(field_name, str(exc)))
            continue
        if value is None and name in REQUIRED_NUMERIC_FIELDS:
            errors.append(FieldError(field_name, "Field is required"))
        elif value is not None and value < 0:
            errors.append(FieldError(field_name, "Must not be negative"))
    if pricing.strict and item.quality and not pricing.knows_quality(item.quality):
        errors.append(FieldError(f"{prefix}.quality", "Unknown quality tier"))
    return errors


def _validate_order_details(request: CheckoutRequest) -> List[FieldError]:
    details = request.orderDetails
    if details is None:
        return [FieldError("orderDetails", "Order details are required")]
    errors: List[FieldError] = []
    try:
        price = to_number(details.price)
    except ValueError as exc:
        errors.append(FieldError("orderDetails.price", str(exc)))
    else:
        if price is None:
            errors.append(FieldError("orderDetails.price", "Field is required"))
        elif price < 0:
            errors.append(FieldError("orderDetails.price", "Must not be negative"))
    if _is_blank(details.delivery_type):
        errors.append(FieldError("orderDetails.delivery_type", "Field is required"))
    location = details.drop_off_location
    if location and location not in settings.drop_off_locations:
        errors.append(
            FieldError(
                "orderDetails.drop_off_location",
                f"Must be one of: {', '.join(settings.drop_off_locations)}",
            )
        )
    return errors


def validate_checkout(request: CheckoutRequest, pricing: PricingEngine) -> List[FieldError]:
    """Collect every violation in the request; an empty list means valid."""
    errors = _validate_customer(request)
    if not request.stlFiles:
        errors.append(FieldError("stlFiles", "At least one STL file is required"))
    for index, item in enumerate(request.stlFiles):
        errors.extend(_validate_stl(index, item, pricing))
    errors.extend(_validate_order_details(request))
    return errors


def _normalized_entry(item: StlLineItem) -> StlLineItem:
    return item.model_copy(
        update={name: to_number(getattr(item, name), kind) for name, kind in NUMERIC_FIELDS}
    )


@dataclass
class CheckoutResult:
    order_id: str
    customer: ResolvedCustomer
    delivery_type: str
    drop_off_location: str
    payment_method: str
    created_at: datetime
    lines: List[Dict[str, Any]] = field(default_factory=list)
    stl_records: List[Dict[str, Any]] = field(default_factory=list)
    linked_stls: List[LinkedStl] = field(default_factory=list)
    failures: List[LineFailure] = field(default_factory=list)

    @property
    def total(self) -> float:
        cents = sum(units_to_cents(line.get("price") or 0) for line in self.lines)
        return cents_to_units(cents)

    @property
    def partial(self) -> bool:
        return bool(self.failures)

    def fail(self, index: Optional[int], stage: str, exc: Exception) -> None:
        message = getattr(exc, "message", None) or str(exc)
        self.failures.append(LineFailure(index=index, stage=stage, message=message))

    def to_receipt(self) -> OrderReceipt:
        return OrderReceipt(
            id=self.lines[0]["id"],
            order_id=self.order_id,
            customer_id=self.customer.id,
            customer_name=self.customer.full_name,
            customer_email=self.customer.email,
            total=self.total,
            status=INITIAL_ORDER_STATUS,
            delivery_type=self.delivery_type,
            created_at=self.created_at,
            order_count=len(self.lines),
            stl_files=list(self.linked_stls),
            failures=list(self.failures),
            partial=self.partial,
        )


class OrderComposer:
    def __init__(self, store, pricing: PricingEngine) -> None:
        self.store = store
        self.pricing = pricing

    async def create_order(self, request: CheckoutRequest) -> CheckoutResult:
        errors = validate_checkout(request, self.pricing)
        if errors:
            raise ValidationError(errors)

        customer = await find_or_create_customer(
            self.store, request.customerData.model_dump()
        )

        details = request.orderDetails
        result = CheckoutResult(
            order_id=generate_order_id(),
            customer=customer,
            delivery_type=details.delivery_type or DEFAULT_DELIVERY_TYPE,
            drop_off_location=details.drop_off_location
            or settings.default_drop_off_location,
            payment_method=details.payment_method or DEFAULT_PAYMENT_METHOD,
            created_at=datetime.now(timezone.utc),
        )
        logger.info(
            "Composing order %s for customer %s with %d STL file(s)",
            result.order_id,
            customer.id,
            len(request.stlFiles),
        )

        priced_cents = 0
        billed: List[Tuple[int, Dict[str, Any]]] = []
        entries = [_normalized_entry(item) for item in request.stlFiles]
        for index, item in enumerate(entries):
            price_cents = self._price(item)
            priced_cents += price_cents
            stl = await self._persist_line(result, index, item, price_cents)
            if stl is not None:
                billed.append((index, stl))

        if not result.lines:
            raise UpstreamError("No orders were created", status_code=500)

        residual_cents = units_to_cents(to_number(details.price)) - priced_cents
        if residual_cents > 0:
            await self._persist_residual(result, residual_cents)

        await self._link(result, billed)

        logger.info(
            "Created %d order line(s) for %s, total %.2f",
            len(result.lines),
            result.order_id,
            result.total,
        )
        return result

    def _price(self, item: StlLineItem) -> int:
        scale, quantity, infill = effective_print_options(item.scale, item.quantity, item.infill)
        price_cents = self.pricing.compute_price(
            item.file_size or 0,
            item.material,
            scale,
            quantity,
            infill,
            item.quality or DEFAULT_QUALITY,
            item.shipping or DEFAULT_SHIPPING,
        )
        if item.cost is not None and units_to_cents(item.cost) != price_cents:
            logger.warning(
                "Quoted cost %.2f for %s differs from computed price %.2f",
                item.cost,
                item.stl_file,
                cents_to_units(price_cents),
            )
        return price_cents

    def _line_record(self, result: CheckoutResult, stl_id: str, price: float) -> Dict[str, Any]:
        return {
            "order_id": result.order_id,
            "customer_id": result.customer.id,
            "stl_id": stl_id,
            "status": INITIAL_ORDER_STATUS,
            "price": price,
            "delivery_type": result.delivery_type,
            "drop_off_location": result.drop_off_location,
            "payment_method": result.payment_method,
            "time_of_placement": result.created_at.isoformat(),
            "line_number": len(result.lines) + 1,
        }

    async def _persist_line(
        self,
        result: CheckoutResult,
        index: int,
        item: StlLineItem,
        price_cents: int,
    ) -> Optional[Dict[str, Any]]:
        scale, quantity, infill = effective_print_options(item.scale, item.quantity, item.infill)
        stl_record = {
            "stl_id": item.stl_file,
            "stl_file": item.stl_file,
            "file_name": item.name,
            "file_size": item.file_size or 0,
            "material": item.material.strip(),
            "colour": item.colour.strip(),
            "scale": scale,
            "quantity": quantity,
            "infill": infill,
            "quality": item.quality or DEFAULT_QUALITY,
            "shipping": item.shipping or DEFAULT_SHIPPING,
            "cost": item.cost,
            "weight": item.weight,
            "price": price_cents,
            "stl_order": None,
        }
        try:
            stl = await asyncio.to_thread(self.store.create, settings.stls_table, stl_record)
        except Exception as exc:
            logger.warning("STL %d of %s not stored: %s", index, result.order_id, exc)
            result.fail(index, "stl", exc)
            return None
        result.stl_records.append(stl)

        line = self._line_record(result, stl["id"], cents_to_units(price_cents))
        try:
            order = await asyncio.to_thread(self.store.create, settings.orders_table, line)
        except Exception as exc:
            logger.warning(
                "Order line for STL %s of %s not created: %s", stl["id"], result.order_id, exc
            )
            result.fail(index, "order", exc)
            return None
        result.lines.append(order)
        return stl

    async def _persist_residual(self, result: CheckoutResult, residual_cents: int) -> None:
        line = self._line_record(
            result, TAX_AND_SHIPPING_STL_ID, cents_to_units(residual_cents)
        )
        try:
            order = await asyncio.to_thread(self.store.create, settings.orders_table, line)
        except Exception as exc:
            logger.warning("Residual line for %s not created: %s", result.order_id, exc)
            result.fail(None, TAX_AND_SHIPPING_STL_ID, exc)
            return
        result.lines.append(order)

    async def _link(
        self, result: CheckoutResult, billed: List[Tuple[int, Dict[str, Any]]]
    ) -> None:
        for index, stl in billed:
            try:
                await asyncio.to_thread(
                    self.store.update,
                    settings.stls_table,
                    stl["id"],
                    {"stl_order": result.order_id},
                )
            except Exception as exc:
                logger.warning(
                    "Could not link STL %s to order %s: %s", stl["id"], result.order_id, exc
                )
                result.fail(index, "link", exc)
                continue
            result.linked_stls.append(
                LinkedStl(metadata_id=stl["id"], stl_id=stl.get("stl_id") or stl["id"])
            )
