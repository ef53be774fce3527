from fastapi import APIRouter, Depends

from deps import get_pricing_engine
from errors import FieldError, ValidationError
from schemas import ApiResponse, QuoteRequest, QuoteResponse
from services.pricing import PricingEngine, UnknownPricingOption, cents_to_units
from services.upload_service import build_print_options

router = APIRouter(prefix="/api/pricing", tags=["pricing"])


@router.post("/quote", response_model=ApiResponse[QuoteResponse])
async def quote(
    payload: QuoteRequest,
    pricing: PricingEngine = Depends(get_pricing_engine),
) -> ApiResponse[QuoteResponse]:
    options = build_print_options(
        material=payload.material,
        scale=payload.scale,
        quantity=payload.quantity,
        infill=payload.infill,
        quality=payload.quality,
        shipping=payload.shipping,
    )
    try:
        cents = pricing.compute_price(
            payload.file_size,
            options.material,
            options.scale,
            options.quantity,
            options.infill,
            options.quality,
            options.shipping,
        )
    except UnknownPricingOption as exc:
        raise ValidationError([FieldError(exc.option, str(exc))]) from exc
    return ApiResponse[QuoteResponse](
        message="Price calculated",
        data=QuoteResponse(
            price_cents=cents,
            price=cents_to_units(cents),
            print_options=options,
        ),
    )
