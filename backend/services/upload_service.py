import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from config import settings
from constants import (
    ALLOWED_COLOURS,
    ALLOWED_MATERIALS,
    BYTES_PER_MB,
    DEFAULT_COLOUR,
    DEFAULT_MATERIAL,
    DEFAULT_QUALITY,
    DEFAULT_SHIPPING,
    STL_EXTENSION,
)
from errors import FieldError, NotFoundError, UpstreamError, ValidationError
from schemas import (
    PrintOptions,
    PrintOptionsUpdate,
    StlInfo,
    UploadedStl,
    UploadFailure,
    UploadResult,
)
from services.parsing import parse_datetime, parse_float, parse_int
from services.pricing import PricingEngine, cents_to_units, effective_print_options

logger = logging.getLogger("print-orders")


@dataclass
class IncomingFile:
    name: str
    data: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


def build_print_options(
    material: Optional[str] = None,
    color: Optional[str] = None,
    scale: Optional[float] = None,
    quantity: Optional[int] = None,
    infill: Optional[int] = None,
    quality: Optional[str] = None,
    shipping: Optional[str] = None,
) -> PrintOptions:
    scale, quantity, infill = effective_print_options(scale, quantity, infill)
    return PrintOptions(
        material=material or DEFAULT_MATERIAL,
        color=color or DEFAULT_COLOUR,
        scale=scale,
        quantity=quantity,
        infill=infill,
        quality=quality or DEFAULT_QUALITY,
        shipping=shipping or DEFAULT_SHIPPING,
    )


def _validate_options(options: PrintOptions, pricing: PricingEngine) -> List[FieldError]:
    errors: List[FieldError] = []
    if options.material.strip().lower() not in ALLOWED_MATERIALS:
        errors.append(
            FieldError("material", f"Must be one of: {', '.join(ALLOWED_MATERIALS)}")
        )
    if options.color.strip().lower() not in ALLOWED_COLOURS:
        errors.append(
            FieldError("color", f"Must be one of: {', '.join(ALLOWED_COLOURS)}")
        )
    for name in ("scale", "quantity", "infill"):
        if getattr(options, name) < 0:
            errors.append(FieldError(name, "Must not be negative"))
    if pricing.strict and not pricing.knows_quality(options.quality):
        errors.append(FieldError("quality", "Unknown quality tier"))
    return errors


def _priced_tiers(options: PrintOptions, pricing: PricingEngine) -> PrintOptions:
    """Replace tiers the price table does not know with the tiers actually charged."""
    changes = {}
    if not pricing.knows_quality(options.quality):
        changes["quality"] = DEFAULT_QUALITY
    if not pricing.knows_shipping(options.shipping):
        changes["shipping"] = DEFAULT_SHIPPING
    if changes:
        logger.warning(
            "Storing %s in place of unknown tier(s) %s",
            changes,
            {name: getattr(options, name) for name in changes},
        )
    return options.model_copy(update=changes)


def _validate_files(files: List[IncomingFile]) -> List[FieldError]:
    if not files:
        return [FieldError("files", "No files uploaded")]
    errors: List[FieldError] = []
    if len(files) > settings.max_upload_files:
        errors.append(
            FieldError("files", f"At most {settings.max_upload_files} files per upload")
        )
    max_bytes = settings.max_upload_size_mb * BYTES_PER_MB
    for index, item in enumerate(files):
        if not item.name.lower().endswith(STL_EXTENSION):
            errors.append(FieldError(f"files[{index}]", "Only STL files are allowed"))
        if item.size == 0:
            errors.append(FieldError(f"files[{index}]", "File is empty"))
        elif item.size > max_bytes:
            errors.append(
                FieldError(
                    f"files[{index}]",
                    f"File exceeds {settings.max_upload_size_mb}MB",
                )
            )
    return errors


def _price(pricing: PricingEngine, size: int, options: PrintOptions) -> int:
    return pricing.compute_price(
        size,
        options.material,
        options.scale,
        options.quantity,
        options.infill,
        options.quality,
        options.shipping,
    )


def _options_from_row(row: Dict[str, Any]) -> PrintOptions:
    return build_print_options(
        material=row.get("material"),
        color=row.get("colour") or row.get("color"),
        scale=parse_float(row.get("scale")),
        quantity=parse_int(row.get("quantity")),
        infill=parse_int(row.get("infill")),
        quality=row.get("quality"),
        shipping=row.get("shipping"),
    )


async def upload_stl_files(
    store,
    storage,
    pricing: PricingEngine,
    files: List[IncomingFile],
    options: PrintOptions,
) -> UploadResult:
    errors = _validate_files(files) + _validate_options(options, pricing)
    if errors:
        raise ValidationError(errors)
    options = _priced_tiers(options, pricing)

    uploaded: List[UploadedStl] = []
    failures: List[UploadFailure] = []
    for item in files:
        price_cents = _price(pricing, item.size, options)
        try:
            stored = await asyncio.to_thread(
                storage.put,
                settings.storage_bucket,
                item.data,
                name=item.name,
            )
        except Exception as exc:
            logger.warning("Failed to upload %s: %s", item.name, exc)
            failures.append(
                UploadFailure(name=item.name, message=getattr(exc, "message", str(exc)))
            )
            continue

        record = {
            "stl_id": stored.id,
            "stl_file": stored.url,
            "file_name": item.name,
            "file_size": item.size,
            "material": options.material,
            "colour": options.color,
            "scale": options.scale,
            "quantity": options.quantity,
            "infill": options.infill,
            "quality": options.quality,
            "shipping": options.shipping,
            "price": price_cents,
            "stl_order": None,
        }
        metadata_id = None
        try:
            row = await asyncio.to_thread(store.create, settings.stls_table, record)
            metadata_id = row["id"]
        except Exception as exc:
            logger.warning(
                "File %s uploaded as %s but metadata not saved: %s",
                item.name,
                stored.id,
                exc,
            )

        uploaded.append(
            UploadedStl(
                file_id=stored.id,
                metadata_id=metadata_id,
                name=item.name,
                url=stored.url,
                price=cents_to_units(price_cents),
                size=item.size,
                size_mb=f"{item.size / BYTES_PER_MB:.2f}",
                print_options=options,
            )
        )

    if not uploaded:
        raise UpstreamError("Failed to upload any files", status_code=500)

    logger.info("Uploaded %d STL file(s)", len(uploaded))
    return UploadResult(
        files=uploaded,
        file_ids=[item.file_id for item in uploaded],
        total=round(sum(item.price for item in uploaded), 2),
        failures=failures,
    )


async def update_print_options(
    store,
    pricing: PricingEngine,
    metadata_id: str,
    changes: PrintOptionsUpdate,
) -> StlInfo:
    row = await asyncio.to_thread(store.get, settings.stls_table, metadata_id)
    current = _options_from_row(row)
    merged = build_print_options(
        **{**current.model_dump(), **changes.model_dump(exclude_none=True)}
    )
    errors = _validate_options(merged, pricing)
    if errors:
        raise ValidationError(errors)
    merged = _priced_tiers(merged, pricing)

    file_size = parse_int(row.get("file_size")) or 0
    updated = await asyncio.to_thread(
        store.update,
        settings.stls_table,
        metadata_id,
        {
            "material": merged.material,
            "colour": merged.color,
            "scale": merged.scale,
            "quantity": merged.quantity,
            "infill": merged.infill,
            "quality": merged.quality,
            "shipping": merged.shipping,
            "price": _price(pricing, file_size, merged),
        },
    )
    return format_stl_info(updated)


def format_stl_info(row: Dict[str, Any]) -> StlInfo:
    price = parse_int(row.get("price")) or 0
    return StlInfo(
        id=row.get("stl_id"),
        metadata_id=row["id"],
        name=row.get("file_name"),
        url=row.get("stl_file"),
        price=cents_to_units(price),
        file_size=parse_int(row.get("file_size")),
        print_options=_options_from_row(row),
        stl_order=row.get("stl_order"),
        created_at=parse_datetime(row.get("created_at")),
    )


async def get_stl_info(store, file_id: str) -> StlInfo:
    result = await asyncio.to_thread(
        store.list, settings.stls_table, {"stl_id": file_id}, limit=1
    )
    if not result.items:
        raise NotFoundError("STL file not found")
    return format_stl_info(result.items[0])


async def delete_stl(store, storage, file_id: str) -> int:
    """Remove metadata records for ``file_id`` then the stored object.

    Returns the number of metadata records removed.
    """
    removed = 0
    try:
        result = await asyncio.to_thread(
            store.list, settings.stls_table, {"stl_id": file_id}
        )
        for row in result.items:
            await asyncio.to_thread(store.delete, settings.stls_table, row["id"])
            removed += 1
    except Exception as exc:
        logger.warning("Could not delete metadata for %s: %s", file_id, exc)
    await asyncio.to_thread(storage.delete, settings.storage_bucket, file_id)
    logger.info("Deleted STL %s (%d metadata record(s))", file_id, removed)
    return removed
