from fastapi import APIRouter

from schemas import ApiInfoResponse, ApiResponse
from services.info_service import get_api_info

router = APIRouter(prefix="/api", tags=["info"])


@router.get("/info", response_model=ApiResponse[ApiInfoResponse])
async def read_info() -> ApiResponse[ApiInfoResponse]:
    return ApiResponse[ApiInfoResponse](message="Service info", data=get_api_info())
