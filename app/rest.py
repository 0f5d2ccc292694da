from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from fastapi import HTTPException

from .core import parse_filters, parse_select, project, row_matches, singular, sort_rows
from .database import BUCKETS, TABLES, UNIQUE_COLUMNS, _get_lock, get_table, next_id

# This file contains the logic behind the table and storage endpoints.

Row = Dict[str, Any]


def _embed(row: Row, table: str, name: str, columns: List[str]) -> Any:
    related = TABLES.get(name, [])
    fk = f"{singular(name)}_id"
    if fk in row:
        # many-to-one: products.category_id -> categories
        if row[fk] is None:
            return None
        for other in related:
            if other.get("id") == row[fk]:
                return project(other, columns)
        return None
    # one-to-many: transaction <- transaction_items.transaction_id
    back = f"{singular(table)}_id"
    return [project(other, columns) for other in related if other.get(back) == row.get("id")]


def _shape(row: Row, table: str, select: Optional[str]) -> Row:
    columns, embeds = parse_select(select)
    out = project(row, columns)
    for name, inner in embeds.items():
        out[name] = _embed(row, table, name, inner)
    return out


def _check_unique(table: str, rows: List[Row], candidate: Row, skip: Optional[Row] = None) -> None:
    for column in UNIQUE_COLUMNS.get(table, []):
        value = candidate.get(column)
        if value is None:
            continue
        for existing in rows:
            if existing is skip:
                continue
            if existing.get(column) == value:
                raise HTTPException(
                    status_code=409,
                    detail={
                        "code": "23505",
                        "message": f'duplicate key value violates unique constraint "{table}_{column}_key"',
                        "details": f"Key ({column})=({value}) already exists.",
                    },
                )


def _one(rows: List[Row]) -> Row:
    if len(rows) != 1:
        raise HTTPException(
            status_code=406,
            detail={
                "code": "PGRST116",
                "message": "JSON object requested, multiple (or no) rows returned",
                "details": f"The result contains {len(rows)} rows",
            },
        )
    return rows[0]


async def select_logic(table: str, params: List[Tuple[str, str]], single: bool):
    query = dict(params)
    filters = parse_filters(params)
    rows = [r for r in TABLES.get(table, []) if row_matches(r, filters)]
    rows = sort_rows(rows, query.get("order"))
    if "limit" in query:
        rows = rows[: int(query["limit"])]
    out = [_shape(r, table, query.get("select")) for r in rows]
    return _one(out) if single else out


async def insert_logic(table: str, body: Union[Row, List[Row]], params: List[Tuple[str, str]], single: bool):
    payload = body if isinstance(body, list) else [body]
    if not all(isinstance(r, dict) for r in payload):
        raise HTTPException(status_code=400, detail="rows must be JSON objects")

    async with _get_lock(f"table:{table}"):
        rows = get_table(table)
        created: List[Row] = []
        # validate the whole batch before writing anything, like a single INSERT statement
        for candidate in payload:
            _check_unique(table, rows + created, candidate)
            row = dict(candidate)
            row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
            created.append(row)
        for row in created:
            row["id"] = row.get("id") or next_id(table)
        rows.extend(created)

    out = [_shape(r, table, dict(params).get("select")) for r in created]
    return _one(out) if single else out


async def update_logic(table: str, values: Row, params: List[Tuple[str, str]], single: bool):
    filters = parse_filters(params)
    if not filters:
        raise HTTPException(status_code=400, detail={"code": "21000", "message": "UPDATE requires a WHERE clause"})
    if "id" in values:
        raise HTTPException(status_code=400, detail="id cannot be updated")

    async with _get_lock(f"table:{table}"):
        rows = get_table(table)
        matched = [r for r in rows if row_matches(r, filters)]
        for row in matched:
            _check_unique(table, rows, {**row, **values}, skip=row)
        for row in matched:
            row.update(values)

    out = [_shape(r, table, dict(params).get("select")) for r in matched]
    return _one(out) if single else out


async def upload_logic(bucket: str, path: str, data: bytes, content_type: str):
    objects = BUCKETS.setdefault(bucket, {})
    if path in objects:
        raise HTTPException(status_code=409, detail={"code": "Duplicate", "message": "The resource already exists"})
    objects[path] = {"data": data, "content_type": content_type}
    return {"Key": f"{bucket}/{path}"}


async def download_logic(bucket: str, path: str):
    obj = BUCKETS.get(bucket, {}).get(path)
    if obj is None:
        raise HTTPException(status_code=404, detail={"code": "not_found", "message": "Object not found"})
    return obj
