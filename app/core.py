from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException

# Query-string helpers shared by the table endpoints (PostgREST dialect subset).

RESERVED_PARAMS = {"select", "order", "limit"}
COMPARISONS = {"eq", "neq", "gt", "gte", "lt", "lte"}


def singular(table: str) -> str:
    if table.endswith("ies"):
        return table[:-3] + "y"
    if table.endswith("s"):
        return table[:-1]
    return table


def _as_text(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _as_number(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_select(raw: Optional[str]) -> Tuple[List[str], Dict[str, List[str]]]:
    """Split ``id,name,categories(name)`` into plain columns and embeds."""
    if not raw:
        return ["*"], {}
    columns: List[str] = []
    embeds: Dict[str, List[str]] = {}
    depth = 0
    token = ""
    for ch in raw + ",":
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if ch == "," and depth == 0:
            token = token.strip()
            if "(" in token:
                name, inner = token.split("(", 1)
                embeds[name.strip()] = [c.strip() for c in inner.rstrip(")").split(",") if c.strip()]
            elif token:
                columns.append(token)
            token = ""
            continue
        token += ch
    if depth != 0:
        raise HTTPException(status_code=400, detail="unbalanced parentheses in select")
    return columns or ([] if embeds else ["*"]), embeds


def parse_filters(params: List[Tuple[str, str]]) -> List[Tuple[str, str, str]]:
    filters = []
    for column, raw in params:
        if column in RESERVED_PARAMS:
            continue
        op, sep, value = raw.partition(".")
        if not sep or op not in COMPARISONS:
            raise HTTPException(status_code=400, detail=f"unsupported filter: {column}={raw}")
        filters.append((column, op, value))
    return filters


def row_matches(row: Dict[str, Any], filters: List[Tuple[str, str, str]]) -> bool:
    for column, op, value in filters:
        current = row.get(column)
        if op == "eq" and _as_text(current) != value:
            return False
        if op == "neq" and _as_text(current) == value:
            return False
        if op in ("gt", "gte", "lt", "lte"):
            left, right = _as_number(current), _as_number(value)
            if left is None or right is None:
                return False
            if op == "gt" and not left > right:
                return False
            if op == "gte" and not left >= right:
                return False
            if op == "lt" and not left < right:
                return False
            if op == "lte" and not left <= right:
                return False
    return True


def sort_rows(rows: List[Dict[str, Any]], order: Optional[str]) -> List[Dict[str, Any]]:
    if not order:
        return rows
    # apply the least significant key first; sorted() is stable
    for part in reversed(order.split(",")):
        column, _, direction = part.partition(".")
        reverse = direction == "desc"
        rows = sorted(
            rows,
            key=lambda r: (r.get(column) is None, r.get(column) if r.get(column) is not None else 0),
            reverse=reverse,
        )
    return rows


def project(row: Dict[str, Any], columns: List[str]) -> Dict[str, Any]:
    if "*" in columns:
        return dict(row)
    return {c: row.get(c) for c in columns}
