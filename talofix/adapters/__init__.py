"""
外部协作方适配器

- identity: 身份账户
- blobs: 对象存储
"""

from talofix.adapters.blobs import BlobObject, BlobStore, LocalBlobStore, purge_prefix
from talofix.adapters.identity import IdentityAdapter, SqlIdentityAdapter, delete_account_if_exists

__all__ = [
    "BlobObject",
    "BlobStore",
    "LocalBlobStore",
    "purge_prefix",
    "IdentityAdapter",
    "SqlIdentityAdapter",
    "delete_account_if_exists",
]
