import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from config import settings
from errors import (
    ConflictError,
    FieldError,
    UnauthorizedError,
    UpstreamError,
    ValidationError,
)
from schemas import AuthSession, AuthUser, RegisterRequest
from services.customers_service import (
    build_customer_record,
    email_lock,
    find_customer_by_email,
    normalize_phone,
)

logger = logging.getLogger("print-orders")

REGISTER_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "phone",
    "delivery_address",
    "password",
)


@dataclass
class IssuedSession:
    access_token: str
    expires_in: Optional[int]
    user: Dict[str, Any]


class SupabaseAuthClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        headers = {"apikey": self.api_key}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        access_token: Optional[str] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        url = f"{self.base_url}/auth/v1{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                return await client.request(
                    method, url, headers=self._headers(access_token), **kwargs
                )
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Auth service unavailable: {exc}") from exc

    async def sign_up(
        self, email: str, password: str, metadata: Dict[str, Any]
    ) -> Dict[str, Any]:
        response = await self._request(
            "POST",
            "/signup",
            json={"email": email, "password": password, "data": metadata},
        )
        if response.status_code in (400, 422) and "registered" in response.text.lower():
            raise ConflictError("Email is already registered")
        if response.status_code >= 400:
            raise UpstreamError(f"Sign-up failed: {response.text}")
        payload = response.json()
        return payload.get("user") or payload

    async def sign_in(self, email: str, password: str) -> IssuedSession:
        response = await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        if response.status_code in (400, 401):
            raise UnauthorizedError("Invalid credentials")
        if response.status_code >= 400:
            raise UpstreamError(f"Sign-in failed: {response.text}")
        payload = response.json()
        return IssuedSession(
            access_token=payload["access_token"],
            expires_in=payload.get("expires_in"),
            user=payload.get("user") or {},
        )

    async def get_user(self, access_token: str) -> Dict[str, Any]:
        response = await self._request("GET", "/user", access_token=access_token)
        if response.status_code != 200:
            raise UnauthorizedError("Not authenticated")
        return response.json()

    async def sign_out(self, access_token: str) -> None:
        response = await self._request("POST", "/logout", access_token=access_token)
        if response.status_code >= 400 and response.status_code != 401:
            raise UpstreamError(f"Sign-out failed: {response.text}")


def format_user(user: Dict[str, Any], customer: Optional[Dict[str, Any]] = None) -> AuthUser:
    metadata = user.get("user_metadata") or {}
    customer = customer or {}
    return AuthUser(
        id=user.get("id") or "",
        email=user.get("email"),
        first_name=customer.get("first_name") or metadata.get("first_name"),
        last_name=customer.get("last_name") or metadata.get("last_name"),
        customer_id=customer.get("id"),
        metadata=metadata,
    )


def _validate_registration(payload: RegisterRequest) -> List[FieldError]:
    errors = [
        FieldError(name, "Field is required")
        for name in REGISTER_FIELDS
        if not str(getattr(payload, name) or "").strip()
    ]
    if payload.phone and not normalize_phone(payload.phone):
        errors.append(FieldError("phone", "Phone must contain at least one digit"))
    return errors


async def register(store, auth_client: SupabaseAuthClient, payload: RegisterRequest):
    errors = _validate_registration(payload)
    if errors:
        raise ValidationError(errors)
    email = payload.email.strip()
    async with email_lock(email):
        if await find_customer_by_email(store, email):
            raise ConflictError("A customer with this email already exists")

        user = await auth_client.sign_up(
            email,
            payload.password,
            {"first_name": payload.first_name, "last_name": payload.last_name},
        )
        record = build_customer_record(payload.model_dump(), user_id=user.get("id"))
        customer = await asyncio.to_thread(store.create, settings.customers_table, record)
    logger.info("Registered customer %s", customer["id"])
    session = await auth_client.sign_in(email, payload.password)
    return session, AuthSession(
        user=format_user(session.user or user, customer),
        expires_in=session.expires_in,
    )


async def login(store, auth_client: SupabaseAuthClient, email: str, password: str):
    session = await auth_client.sign_in(email.strip(), password)
    customer = await find_customer_by_email(store, email)
    return session, AuthSession(
        user=format_user(session.user, customer),
        expires_in=session.expires_in,
    )


async def current_user(store, auth_client: SupabaseAuthClient, access_token: str) -> AuthUser:
    user = await auth_client.get_user(access_token)
    customer = None
    if user.get("email"):
        customer = await find_customer_by_email(store, user["email"])
    return format_user(user, customer)


async def check_email(store, email: str) -> bool:
    return await find_customer_by_email(store, email) is not None
