import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional
from uuid import uuid4

from config import settings
from errors import UpstreamError
from supabase_client import get_supabase

logger = logging.getLogger("print-orders")

STL_CONTENT_TYPE = "model/stl"


@dataclass(frozen=True)
class StoredFile:
    id: str
    url: str
    name: str
    size: int


def build_file_url(bucket: str, file_id: str) -> str:
    base = settings.supabase_url.rstrip("/")
    return f"{base}/storage/v1/object/public/{bucket}/{file_id}"


class SupabaseFileStorage:
    def __init__(self, client_factory: Callable[[], Any] = get_supabase) -> None:
        self._client_factory = client_factory

    def _bucket(self, bucket: str):
        return self._client_factory().storage.from_(bucket)

    def put(
        self,
        bucket: str,
        data: bytes,
        *,
        name: str,
        file_id: Optional[str] = None,
        content_type: str = STL_CONTENT_TYPE,
    ) -> StoredFile:
        file_id = file_id or uuid4().hex
        try:
            self._bucket(bucket).upload(
                file_id,
                data,
                {"content-type": content_type, "upsert": "false"},
            )
        except Exception as exc:
            raise UpstreamError(f"Storage upload failed for {name}: {exc}") from exc
        return StoredFile(
            id=file_id,
            url=build_file_url(bucket, file_id),
            name=name,
            size=len(data),
        )

    def delete(self, bucket: str, file_id: str) -> None:
        try:
            self._bucket(bucket).remove([file_id])
        except Exception as exc:
            raise UpstreamError(f"Storage delete failed for {file_id}: {exc}") from exc
