import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple

from constants import (
    BYTES_PER_MB,
    DEFAULT_INFILL,
    DEFAULT_QUANTITY,
    DEFAULT_SCALE,
)

logger = logging.getLogger("print-orders")

MATERIAL_MULTIPLIERS = {
    "pla": 1.0,
    "abs": 1.2,
    "petg": 1.15,
    "nylon": 1.5,
    "resin": 2.0,
}
QUALITY_MULTIPLIERS = {
    "standard": 1.0,
    "high": 1.5,
    "ultra": 2.0,
}
SHIPPING_COSTS = {
    "standard": 5.0,
    "express": 15.0,
}


def _frozen(values: Mapping[str, float]) -> Mapping[str, float]:
    return MappingProxyType({key.lower(): float(value) for key, value in values.items()})


class UnknownPricingOption(ValueError):
    def __init__(self, option: str, value: Any) -> None:
        super().__init__(f"Unknown {option}: {value}")
        self.option = option
        self.value = value


@dataclass(frozen=True)
class PricingTable:
    base_price: float = 10.0
    size_rate_per_mb: float = 0.1
    reference_infill: float = 20.0
    express_tier: str = "express"
    materials: Mapping[str, float] = field(default_factory=lambda: _frozen(MATERIAL_MULTIPLIERS))
    qualities: Mapping[str, float] = field(default_factory=lambda: _frozen(QUALITY_MULTIPLIERS))
    shipping: Mapping[str, float] = field(default_factory=lambda: _frozen(SHIPPING_COSTS))

    @classmethod
    def build(
        cls,
        *,
        materials: Optional[Mapping[str, float]] = None,
        qualities: Optional[Mapping[str, float]] = None,
        shipping: Optional[Mapping[str, float]] = None,
        **kwargs: Any,
    ) -> "PricingTable":
        return cls(
            materials=_frozen(materials if materials is not None else MATERIAL_MULTIPLIERS),
            qualities=_frozen(qualities if qualities is not None else QUALITY_MULTIPLIERS),
            shipping=_frozen(shipping if shipping is not None else SHIPPING_COSTS),
            **kwargs,
        )


def effective_print_options(
    scale: Optional[float],
    quantity: Optional[int],
    infill: Optional[int],
) -> Tuple[float, int, int]:
    """Substitute defaults for zero or missing scale, quantity and infill."""
    return (
        float(scale) if scale else DEFAULT_SCALE,
        int(quantity) if quantity else DEFAULT_QUANTITY,
        int(infill) if infill else DEFAULT_INFILL,
    )


def cents_to_units(cents: int) -> float:
    return round(cents / 100, 2)


def units_to_cents(amount: float) -> int:
    return int(round(float(amount) * 100))


class PricingEngine:
    """Deterministic print-job pricing.

    ``compute_price`` returns integer cents: the per-unit subtotal is rounded
    to the cent, then multiplied by quantity. Zero values are priced as given;
    callers apply :func:`effective_print_options` first.
    """

    def __init__(self, table: Optional[PricingTable] = None, *, strict: bool = False) -> None:
        self.table = table or PricingTable()
        self.strict = strict

    def _multiplier(self, option: str, lookup: Mapping[str, float], value: Any) -> float:
        key = str(value or "").strip().lower()
        if key in lookup:
            return lookup[key]
        if self.strict:
            raise UnknownPricingOption(option, value)
        logger.warning("Unknown %s %r priced with multiplier 1.0", option, value)
        return 1.0

    def material_multiplier(self, material: Any) -> float:
        return self._multiplier("material", self.table.materials, material)

    def quality_multiplier(self, quality: Any) -> float:
        return self._multiplier("quality", self.table.qualities, quality)

    def shipping_cost(self, shipping: Any) -> float:
        tier = str(shipping or "").strip().lower()
        if tier == self.table.express_tier:
            return self.table.shipping.get(self.table.express_tier, 0.0)
        return self.table.shipping.get("standard", 0.0)

    def knows_material(self, material: Any) -> bool:
        return str(material or "").strip().lower() in self.table.materials

    def knows_quality(self, quality: Any) -> bool:
        return str(quality or "").strip().lower() in self.table.qualities

    def knows_shipping(self, shipping: Any) -> bool:
        return str(shipping or "").strip().lower() in self.table.shipping

    def compute_price(
        self,
        file_size_bytes: float,
        material: Any,
        scale_percent: float,
        quantity: int,
        infill_percent: float,
        quality: Any,
        shipping: Any,
    ) -> int:
        table = self.table
        scale_multiplier = scale_percent / 100
        infill_multiplier = infill_percent / table.reference_infill
        size_cost = (file_size_bytes / BYTES_PER_MB) * table.size_rate_per_mb
        subtotal = (
            table.base_price
            * self.material_multiplier(material)
            * scale_multiplier
            * self.quality_multiplier(quality)
            * infill_multiplier
            + size_cost
            + self.shipping_cost(shipping)
        )
        unit_cents = int(round(subtotal * 100))
        return unit_cents * int(quantity)
