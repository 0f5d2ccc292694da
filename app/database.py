import asyncio
from itertools import count
from typing import Any, Dict, Iterator, List

# This file holds all the in-memory tables, buckets and write locks.

TABLES: Dict[str, List[Dict[str, Any]]] = {}
BUCKETS: Dict[str, Dict[str, Dict[str, Any]]] = {}
_SEQUENCES: Dict[str, Iterator[int]] = {}
_LOCKS: Dict[str, asyncio.Lock] = {}

# column sets that must stay unique per table (Postgres unique indexes)
UNIQUE_COLUMNS: Dict[str, List[str]] = {
    "products": ["sku"],
    "transaction": ["transaction_code"],
}


def _get_lock(key: str) -> asyncio.Lock:
    if key not in _LOCKS:
        _LOCKS[key] = asyncio.Lock()
    return _LOCKS[key]


def get_table(name: str) -> List[Dict[str, Any]]:
    return TABLES.setdefault(name, [])


def next_id(table: str) -> int:
    if table not in _SEQUENCES:
        _SEQUENCES[table] = count(1)
    return next(_SEQUENCES[table])


def reset_all() -> None:
    TABLES.clear()
    BUCKETS.clear()
    _SEQUENCES.clear()
    _LOCKS.clear()
