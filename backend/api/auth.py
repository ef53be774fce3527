from fastapi import APIRouter, Depends, Response, status

from auth import get_access_token, get_current_user
from config import settings
from deps import get_auth_client, get_document_store
from schemas import (
    ApiResponse,
    AuthSession,
    AuthUser,
    CheckEmailRequest,
    CheckEmailResponse,
    LoginRequest,
    RegisterRequest,
)
from services import auth_service

router = APIRouter(prefix="/api/auth", tags=["auth"])

SESSION_MAX_AGE_SECONDS = 30 * 24 * 60 * 60


def _set_session_cookie(response: Response, access_token: str) -> None:
    response.set_cookie(
        settings.session_cookie_name,
        access_token,
        max_age=SESSION_MAX_AGE_SECONDS,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )


@router.post("/check-email", response_model=ApiResponse[CheckEmailResponse])
async def check_email(
    payload: CheckEmailRequest,
    store=Depends(get_document_store),
) -> ApiResponse[CheckEmailResponse]:
    exists = await auth_service.check_email(store, payload.email)
    return ApiResponse[CheckEmailResponse](
        message="Email checked",
        data=CheckEmailResponse(email=payload.email, exists=exists),
    )


@router.post(
    "/register",
    response_model=ApiResponse[AuthSession],
    status_code=status.HTTP_201_CREATED,
)
async def register(
    payload: RegisterRequest,
    response: Response,
    store=Depends(get_document_store),
    auth_client=Depends(get_auth_client),
) -> ApiResponse[AuthSession]:
    issued, session = await auth_service.register(store, auth_client, payload)
    _set_session_cookie(response, issued.access_token)
    return ApiResponse[AuthSession](message="User registered successfully", data=session)


@router.post("/login", response_model=ApiResponse[AuthSession])
async def login(
    payload: LoginRequest,
    response: Response,
    store=Depends(get_document_store),
    auth_client=Depends(get_auth_client),
) -> ApiResponse[AuthSession]:
    issued, session = await auth_service.login(
        store, auth_client, payload.email, payload.password
    )
    _set_session_cookie(response, issued.access_token)
    return ApiResponse[AuthSession](message="Login successful", data=session)


@router.get("/current", response_model=ApiResponse[AuthUser])
async def read_current_user(
    user: AuthUser = Depends(get_current_user),
) -> ApiResponse[AuthUser]:
    return ApiResponse[AuthUser](message="User fetched successfully", data=user)


@router.post("/logout", response_model=ApiResponse[dict])
async def logout(
    response: Response,
    access_token: str = Depends(get_access_token),
    auth_client=Depends(get_auth_client),
) -> ApiResponse[dict]:
    await auth_client.sign_out(access_token)
    response.delete_cookie(settings.session_cookie_name, path="/")
    return ApiResponse[dict](message="Logout successful", data={})
