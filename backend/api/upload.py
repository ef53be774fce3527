from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from auth import get_current_user_id
from deps import get_document_store, get_file_storage, get_pricing_engine
from schemas import ApiResponse, PrintOptionsUpdate, StlInfo, UploadResult
from services import upload_service
from services.upload_service import IncomingFile, build_print_options

router = APIRouter(prefix="/api/upload", tags=["upload"])


@router.post(
    "/stl",
    response_model=ApiResponse[UploadResult],
    status_code=status.HTTP_201_CREATED,
)
async def upload_stl(
    files: Optional[List[UploadFile]] = File(default=None),
    material: Optional[str] = Form(default=None),
    color: Optional[str] = Form(default=None),
    scale: Optional[float] = Form(default=None),
    quantity: Optional[int] = Form(default=None),
    infill: Optional[int] = Form(default=None),
    quality: Optional[str] = Form(default=None),
    shipping: Optional[str] = Form(default=None),
    store=Depends(get_document_store),
    storage=Depends(get_file_storage),
    pricing=Depends(get_pricing_engine),
) -> ApiResponse[UploadResult]:
    incoming = [
        IncomingFile(
            name=item.filename or "",
            data=await item.read(),
            content_type=item.content_type,
        )
        for item in files or []
    ]
    options = build_print_options(
        material=material,
        color=color,
        scale=scale,
        quantity=quantity,
        infill=infill,
        quality=quality,
        shipping=shipping,
    )
    result = await upload_service.upload_stl_files(
        store, storage, pricing, incoming, options
    )
    return ApiResponse[UploadResult](
        message=f"{len(result.files)} file(s) uploaded successfully",
        data=result,
    )


@router.put("/stl/{metadata_id}/options", response_model=ApiResponse[StlInfo])
async def update_options(
    metadata_id: str,
    payload: PrintOptionsUpdate,
    store=Depends(get_document_store),
    pricing=Depends(get_pricing_engine),
) -> ApiResponse[StlInfo]:
    info = await upload_service.update_print_options(store, pricing, metadata_id, payload)
    return ApiResponse[StlInfo](message="Print options updated", data=info)


@router.get("/stl/{file_id}/info", response_model=ApiResponse[StlInfo])
async def read_stl_info(
    file_id: str,
    store=Depends(get_document_store),
) -> ApiResponse[StlInfo]:
    info = await upload_service.get_stl_info(store, file_id)
    return ApiResponse[StlInfo](message="STL fetched successfully", data=info)


@router.delete("/stl/{file_id}", response_model=ApiResponse[dict])
async def delete_stl(
    file_id: str,
    user_id: str = Depends(get_current_user_id),
    store=Depends(get_document_store),
    storage=Depends(get_file_storage),
) -> ApiResponse[dict]:
    removed = await upload_service.delete_stl(store, storage, file_id)
    return ApiResponse[dict](
        message="STL file deleted successfully",
        data={"file_id": file_id, "metadata_removed": removed},
    )
