"""
通用依赖

提供文档存储、身份服务、对象存储与授权守卫的依赖注入。
测试中通过 app.dependency_overrides 替换。
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from talofix.adapters.blobs import BlobStore, LocalBlobStore
from talofix.adapters.identity import IdentityAdapter, SqlIdentityAdapter
from talofix.core.config import settings
from talofix.core.guard import AuthorizationGuard
from talofix.database.engine import async_session_maker
from talofix.database.store import DocumentStore


@lru_cache
def get_store() -> DocumentStore:
    return DocumentStore(async_session_maker)


@lru_cache
def get_blob_store() -> BlobStore:
    return LocalBlobStore(settings.BLOB_ROOT, settings.BLOB_PUBLIC_BASE_URL)


def get_identity(
    store: Annotated[DocumentStore, Depends(get_store)],
) -> IdentityAdapter:
    return SqlIdentityAdapter(store)


def get_guard(
    store: Annotated[DocumentStore, Depends(get_store)],
) -> AuthorizationGuard:
    return AuthorizationGuard(store)
