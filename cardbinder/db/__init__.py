from cardbinder.db.database import get_session, init_db
from cardbinder.db.operations import (
    append_entry,
    get_or_create_collection,
    load_collection,
    lock_collection,
    remove_matching,
    replace_all,
    upsert_increment_batch,
)

__all__ = [
    "append_entry",
    "get_or_create_collection",
    "get_session",
    "init_db",
    "load_collection",
    "lock_collection",
    "remove_matching",
    "replace_all",
    "upsert_increment_batch",
]
