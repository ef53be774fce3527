from config import settings
from constants import (
    ALLOWED_COLOURS,
    ALLOWED_MATERIALS,
    ORDER_STATUSES,
    QUALITY_TIERS,
    SHIPPING_TIERS,
)
from schemas import ApiInfoResponse

SERVICE_NAME = "Print Orders API"


def get_api_info() -> ApiInfoResponse:
    return ApiInfoResponse(
        name=SERVICE_NAME,
        materials=list(ALLOWED_MATERIALS),
        colours=list(ALLOWED_COLOURS),
        qualities=list(QUALITY_TIERS),
        shipping_tiers=list(SHIPPING_TIERS),
        drop_off_locations=list(settings.drop_off_locations),
        order_statuses=list(ORDER_STATUSES),
        strict_pricing=settings.strict_pricing,
    )
