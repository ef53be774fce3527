import asyncio
import hashlib
import logging
import re
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional

from config import settings
from constants import MAX_ADDRESS_LENGTH
from errors import ConflictError, UpstreamError
from schemas import CustomerSummary

logger = logging.getLogger("print-orders")

_email_locks: Dict[str, "_LockEntry"] = {}


@dataclass
class ResolvedCustomer:
    id: str
    record: Dict[str, Any]
    created: bool

    @property
    def full_name(self) -> str:
        first = self.record.get("first_name") or ""
        last = self.record.get("last_name") or ""
        return f"{first} {last}".strip()

    @property
    def email(self) -> str:
        return self.record.get("email") or ""


def normalize_phone(value: Any) -> str:
    return re.sub(r"\D", "", str(value if value is not None else ""))


def normalize_email(value: Any) -> str:
    return str(value or "").strip()


def truncate_address(value: Any) -> str:
    return str(value or "")[:MAX_ADDRESS_LENGTH]


def _lock_key(email: str) -> str:
    return hashlib.sha256(email.lower().encode("utf-8")).hexdigest()


@dataclass
class _LockEntry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


@asynccontextmanager
async def email_lock(email: str) -> AsyncIterator[None]:
    """Serialize customer creation for one email within this process.

    The registry entry is dropped once no caller holds or waits on it.
    """
    key = _lock_key(email)
    entry = _email_locks.get(key)
    if entry is None:
        entry = _LockEntry()
        _email_locks[key] = entry
    entry.users += 1
    try:
        async with entry.lock:
            yield
    finally:
        entry.users -= 1
        if entry.users == 0 and _email_locks.get(key) is entry:
            del _email_locks[key]


def format_customer(row: Dict[str, Any]) -> CustomerSummary:
    phone = row.get("phone")
    return CustomerSummary(
        id=row["id"],
        first_name=row.get("first_name"),
        last_name=row.get("last_name"),
        email=row.get("email") or "",
        phone=str(phone) if phone is not None else None,
        delivery_address=row.get("delivery_address"),
    )


def build_customer_record(
    data: Dict[str, Any], user_id: Optional[str] = None
) -> Dict[str, Any]:
    record = {
        "first_name": str(data.get("first_name") or "").strip(),
        "last_name": str(data.get("last_name") or "").strip(),
        "email": normalize_email(data.get("email")),
        "phone": normalize_phone(data.get("phone")),
        "delivery_address": truncate_address(data.get("delivery_address")),
    }
    if user_id:
        record["user_id"] = user_id
    return record


async def find_customer_by_email(store, email: str) -> Optional[Dict[str, Any]]:
    result = await asyncio.to_thread(
        store.list,
        settings.customers_table,
        {"email": normalize_email(email)},
        limit=1,
    )
    return result.items[0] if result.items else None


async def find_or_create_customer(
    store,
    data: Dict[str, Any],
    *,
    user_id: Optional[str] = None,
) -> ResolvedCustomer:
    """Return the customer keyed by ``data['email']``, creating it when absent.

    Stored attributes of an existing customer are never overwritten. Creation
    is serialized per email within this process; a duplicate-key conflict from
    the store is treated as the existing-customer case.
    """
    email = normalize_email(data.get("email"))
    async with email_lock(email):
        try:
            existing = await find_customer_by_email(store, email)
            if existing:
                logger.info("Reusing customer %s for %s", existing["id"], email)
                return ResolvedCustomer(id=existing["id"], record=existing, created=False)

            record = build_customer_record(data, user_id=user_id)
            try:
                created = await asyncio.to_thread(
                    store.create, settings.customers_table, record
                )
            except ConflictError:
                existing = await find_customer_by_email(store, email)
                if not existing:
                    raise
                logger.info("Customer %s created concurrently, reusing", email)
                return ResolvedCustomer(id=existing["id"], record=existing, created=False)
        except ConflictError as exc:
            raise UpstreamError(f"Customer processing failed: {exc}") from exc
    logger.info("Created customer %s for %s", created["id"], email)
    return ResolvedCustomer(id=created["id"], record=created, created=True)
