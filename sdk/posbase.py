# sdk/posbase.py
import json
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote

import httpx

Row = Dict[str, Any]


class BackendError(Exception):
    """Error response from the table or storage API."""

    def __init__(self, status_code: int, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.code = code

    def __str__(self):
        if self.code:
            return f"{self.message} (HTTP {self.status_code}, {self.code})"
        return f"{self.message} (HTTP {self.status_code})"


def _raise_for_status(r: httpx.Response) -> None:
    if not r.is_error:
        return
    message = r.reason_phrase or "request failed"
    code = None
    try:
        body = r.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("message") or body.get("detail") or message
        code = body.get("code")
    elif r.text:
        message = r.text
    raise BackendError(r.status_code, str(message), code)


def _filter_value(value: Any) -> str:
    # PostgREST spells booleans and nulls in lowercase
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class Query:
    """One statement against a table.

    Mirrors the PostgREST fluent style::

        rows = await client.table("products").select("id, name").eq("is_active", True).order("name").execute()
        row = await client.table("transaction").insert([{...}]).select().single().execute()
    """

    def __init__(self, client: "BackendClient", table: str):
        self._client = client
        self._table = table
        self._method = "GET"
        self._body: Optional[Union[Row, List[Row]]] = None
        self._columns: Optional[str] = None
        self._filters: List[tuple] = []
        self._order: Optional[str] = None
        self._single = False

    def select(self, columns: str = "*") -> "Query":
        # after insert/update this only asks for the written rows back
        self._columns = " ".join(columns.split())
        return self

    def insert(self, rows: Union[Row, List[Row]]) -> "Query":
        self._method = "POST"
        self._body = rows
        return self

    def update(self, values: Row) -> "Query":
        self._method = "PATCH"
        self._body = values
        return self

    def eq(self, column: str, value: Any) -> "Query":
        self._filters.append((column, f"eq.{_filter_value(value)}"))
        return self

    def order(self, column: str, desc: bool = False) -> "Query":
        self._order = f"{column}.desc" if desc else column
        return self

    def single(self) -> "Query":
        self._single = True
        return self

    def _build(self):
        params: List[tuple] = []
        headers: Dict[str, str] = {}
        if self._columns is not None:
            params.append(("select", self._columns.replace(" ", "")))
        params.extend(self._filters)
        if self._order:
            params.append(("order", self._order))
        if self._method != "GET":
            headers["Prefer"] = "return=representation" if self._columns is not None else "return=minimal"
        if self._single:
            headers["Accept"] = "application/vnd.pgrst.object+json"
        return params, headers

    async def execute(self) -> Any:
        params, headers = self._build()
        content = None
        if self._body is not None:
            content = json.dumps(self._body)
            headers["Content-Type"] = "application/json"
        r = await self._client.http.request(
            self._method,
            f"/rest/v1/{self._table}",
            params=params,
            headers=headers,
            content=content,
        )
        _raise_for_status(r)
        if not r.content:
            return None
        return r.json()


class StorageBucket:
    def __init__(self, client: "BackendClient", bucket: str):
        self._client = client
        self.bucket = bucket

    async def upload(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> Row:
        r = await self._client.http.post(
            f"/storage/v1/object/{self.bucket}/{quote(path)}",
            content=data,
            headers={"Content-Type": content_type},
        )
        _raise_for_status(r)
        return r.json()

    def get_public_url(self, path: str) -> str:
        return f"{self._client.base_url}/storage/v1/object/public/{self.bucket}/{quote(path)}"


class StorageClient:
    def __init__(self, client: "BackendClient"):
        self._client = client

    def from_(self, bucket: str) -> StorageBucket:
        return StorageBucket(self._client, bucket)


class BackendClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8085",
        api_key: Optional[str] = None,
        timeout: Optional[float] = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        headers = {}
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"
        self.http = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self.storage = StorageClient(self)

    def table(self, name: str) -> Query:
        return Query(self, name)

    async def reset(self):
        r = await self.http.post("/reset")
        _raise_for_status(r)
        return r.json()

    async def aclose(self) -> None:
        await self.http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()
