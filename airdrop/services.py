"""
Process-wide gateway handles. Each backend client is built once on first use
and handed to the coordinator, which never reaches for globals itself.
"""
from functools import lru_cache

from django.core.files.storage import default_storage

from .lifecycle import FileLifecycle
from .records import FileRecordStore
from .sharing import ShareResolver
from .storage import ObjectStore


@lru_cache(maxsize=None)
def get_object_store():
    return ObjectStore(default_storage)


@lru_cache(maxsize=None)
def get_record_store():
    return FileRecordStore()


def get_lifecycle():
    return FileLifecycle(get_object_store(), get_record_store())


def get_share_resolver():
    return ShareResolver(get_object_store(), get_record_store())
