# app/main.py
from fastapi import FastAPI, HTTPException, Header, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Optional

from .database import BUCKETS, TABLES, reset_all
from .rest import download_logic, insert_logic, select_logic, update_logic, upload_logic

app = FastAPI(title="pos-store backend (in-memory emulator)")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

OBJECT_MEDIA_TYPE = "application/vnd.pgrst.object+json"


@app.exception_handler(HTTPException)
async def _error_body(request: Request, exc: HTTPException):
    # same error envelope as the hosted table API: {"code", "message", "details"}
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"code": None, "message": str(exc.detail), "details": None}
    return JSONResponse(status_code=exc.status_code, content=content)


def _wants_object(accept: Optional[str]) -> bool:
    return bool(accept) and OBJECT_MEDIA_TYPE in accept


def _wants_rows(prefer: Optional[str]) -> bool:
    return bool(prefer) and "return=representation" in prefer


# ---------------------------
# Table endpoints
# ---------------------------
@app.get("/rest/v1/{table}")
async def select_rows(table: str, request: Request, accept: Optional[str] = Header(None)):
    return await select_logic(table, list(request.query_params.multi_items()), _wants_object(accept))


@app.post("/rest/v1/{table}", status_code=201)
async def insert_rows(
    table: str,
    request: Request,
    accept: Optional[str] = Header(None),
    prefer: Optional[str] = Header(None),
):
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="request body must be JSON")
    out = await insert_logic(table, body, list(request.query_params.multi_items()), _wants_object(accept))
    if not _wants_rows(prefer):
        return Response(status_code=201)
    return out


@app.patch("/rest/v1/{table}")
async def update_rows(
    table: str,
    request: Request,
    accept: Optional[str] = Header(None),
    prefer: Optional[str] = Header(None),
):
    try:
        values = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="request body must be JSON")
    if not isinstance(values, dict):
        raise HTTPException(status_code=400, detail="update body must be a JSON object")
    out = await update_logic(table, values, list(request.query_params.multi_items()), _wants_object(accept))
    if not _wants_rows(prefer):
        return Response(status_code=204)
    return out


# ---------------------------
# Storage endpoints
# ---------------------------
@app.post("/storage/v1/object/{bucket}/{path:path}")
async def upload_object(bucket: str, path: str, request: Request, content_type: Optional[str] = Header(None)):
    data = await request.body()
    return await upload_logic(bucket, path, data, content_type or "application/octet-stream")


@app.get("/storage/v1/object/public/{bucket}/{path:path}")
async def download_object(bucket: str, path: str):
    obj = await download_logic(bucket, path)
    return Response(content=obj["data"], media_type=obj["content_type"])


# ---------------------------
# Utility: reset (for tests/demo)
# ---------------------------
@app.post("/reset")
async def reset_store():
    reset_all()
    return {"status": "reset"}


# ---------------------------
# Debug: dump all tables (helpful while testing)
# ---------------------------
@app.get("/debug/tables")
async def debug_tables():
    return {
        "tables": TABLES,
        "buckets": {name: sorted(objects) for name, objects in BUCKETS.items()},
    }
