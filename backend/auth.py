from fastapi import Depends, Header, HTTPException, Request, status

from config import settings
from deps import get_auth_client, get_document_store
from schemas import AuthUser
from services import auth_service


async def get_access_token(
    request: Request,
    authorization: str | None = Header(default=None, convert_underscores=False),
) -> str:
    if authorization and authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1]
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        return token
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing auth token"
    )


async def get_current_user(
    access_token: str = Depends(get_access_token),
    store=Depends(get_document_store),
    auth_client=Depends(get_auth_client),
) -> AuthUser:
    return await auth_service.current_user(store, auth_client, access_token)


async def get_current_user_id(user: AuthUser = Depends(get_current_user)) -> str:
    if not user.id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid user profile"
        )
    return user.id
