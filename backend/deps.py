from functools import lru_cache

from fastapi import Depends

from config import settings
from repositories.document_store import SupabaseDocumentStore
from repositories.file_storage import SupabaseFileStorage
from services.auth_service import SupabaseAuthClient
from services.order_composer import OrderComposer
from services.pricing import PricingEngine


@lru_cache(maxsize=1)
def get_document_store() -> SupabaseDocumentStore:
    return SupabaseDocumentStore()


@lru_cache(maxsize=1)
def get_file_storage() -> SupabaseFileStorage:
    return SupabaseFileStorage()


@lru_cache(maxsize=1)
def get_pricing_engine() -> PricingEngine:
    return PricingEngine(strict=settings.strict_pricing)


@lru_cache(maxsize=1)
def get_auth_client() -> SupabaseAuthClient:
    return SupabaseAuthClient(settings.supabase_url, settings.supabase_anon_key)


def get_order_composer(
    store=Depends(get_document_store),
    pricing: PricingEngine = Depends(get_pricing_engine),
) -> OrderComposer:
    return OrderComposer(store, pricing)
