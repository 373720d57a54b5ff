# autogallery/server.py
from fastapi import APIRouter, Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi import Path as FPath
from typing import Any, Dict, List, Optional
from urllib.parse import quote
import logging

from .backup import backup_filename, export_compact, export_full, import_backup
from .discovery import RemoteDiscoveryEngine
from .errors import ImagesNotFound, RecordNotFound, StorageQuotaExceeded
from .models import ImageRecord, SourceCoords
from .store import LocalStore
from .utils import decode_data_url

log = logging.getLogger("autogallery.server")

router = APIRouter()


def get_store(request: Request) -> LocalStore:
    return request.app.state.store

def get_engine(request: Request) -> RemoteDiscoveryEngine:
    engine = request.app.state.engine
    if engine is None:
        raise HTTPException(404, "remote discovery is not configured")
    return engine

def _quota_error(e: StorageQuotaExceeded, **extra) -> HTTPException:
    detail = {"error": "storage quota exceeded", "requiredBytes": e.required_bytes, "quotaBytes": e.quota_bytes}
    detail.update(extra)
    return HTTPException(status_code=507, detail=detail)

def _item(r: ImageRecord) -> Dict[str, Any]:
    item = r.to_dict(include_payload=False)
    # local payloads are served by /media so listings stay small
    item["displaySource"] = f"/media/{quote(r.key)}" if r.is_local else r.display_source
    return item


@router.get("/library")
async def list_library(store: LocalStore = Depends(get_store)):
    return JSONResponse({"items": [_item(r) for r in store.records]})

@router.get("/library/{key}")
async def get_item_meta(key: str = FPath(...), store: LocalStore = Depends(get_store)):
    try:
        return JSONResponse(_item(store.get(key)))
    except RecordNotFound:
        raise HTTPException(404, "not found")

@router.get("/media/{key}")
async def get_media(key: str = FPath(...), store: LocalStore = Depends(get_store)):
    """
    Serve the decoded bytes of one uploaded image.
    """
    try:
        rec = store.get(key)
    except RecordNotFound:
        raise HTTPException(404, "not found")
    try:
        mime, data = decode_data_url(rec.origin.payload)
    except ValueError as e:
        raise HTTPException(500, f"stored payload unreadable: {e}")
    return Response(content=data, media_type=rec.mime_type or mime)

@router.post("/upload")
async def upload(files: List[UploadFile] = File(...), store: LocalStore = Depends(get_store)):
    added, rejected = store.ingest_many(
        (f.file, f.filename or "", f.content_type) for f in files
    )
    rejected_out = [{"name": e.name, "reason": e.reason, "kind": type(e).__name__} for e in rejected]
    if added:
        try:
            store.persist()
        except StorageQuotaExceeded as e:
            raise _quota_error(e, added=[r.key for r in added], rejected=rejected_out)
    status = 200 if added or not rejected else 400
    return JSONResponse({"ok": bool(added), "added": [_item(r) for r in added], "rejected": rejected_out},
                        status_code=status)

@router.delete("/library/{key}")
async def delete_item(key: str = FPath(...), store: LocalStore = Depends(get_store)):
    try:
        store.delete(key)
    except RecordNotFound:
        raise HTTPException(404, "not found")
    except StorageQuotaExceeded as e:
        raise _quota_error(e)
    return JSONResponse({"ok": True})

@router.delete("/library")
async def clear_library(store: LocalStore = Depends(get_store)):
    store.clear()
    return JSONResponse({"ok": True})

@router.post("/library/repair")
async def repair_library(store: LocalStore = Depends(get_store)):
    try:
        removed = store.repair()
    except StorageQuotaExceeded as e:
        raise _quota_error(e)
    return JSONResponse({"ok": True, "removed": removed})

@router.get("/stats/storage")
async def stats_storage(store: LocalStore = Depends(get_store)):
    health = store.health_check()
    health["quotaBytes"] = store.storage.quota_bytes
    health["imagesBytes"] = store.total_size()
    return JSONResponse(health)

@router.get("/discover")
# plain def so the (blocking) probe chain runs in the threadpool
def discover(request: Request, refresh: bool = False,
                   engine: RemoteDiscoveryEngine = Depends(get_engine)):
    coords: Optional[SourceCoords] = request.app.state.coords
    try:
        records = engine.refresh(coords) if refresh else engine.discover(coords)
    except ImagesNotFound as e:
        raise HTTPException(404, {"error": str(e), "confirmedEmpty": e.confirmed_empty})
    return JSONResponse({"items": [_item(r) for r in records], "strategy": engine.last_strategy})

@router.get("/backup")
async def get_backup(compact: bool = False, store: LocalStore = Depends(get_store)):
    data = export_compact(store) if compact else export_full(store)
    resp = JSONResponse(data)
    resp.headers["Content-Disposition"] = f'attachment; filename="{backup_filename(compact)}"'
    return resp

@router.post("/backup")
async def post_backup(payload: Dict[str, Any], store: LocalStore = Depends(get_store)):
    try:
        imported, rejected = import_backup(store, payload)
    except ValueError as e:
        raise HTTPException(400, str(e))
    except StorageQuotaExceeded as e:
        raise _quota_error(e)
    return JSONResponse({
        "ok": True,
        "imported": imported,
        "rejected": [{"name": e.name, "reason": e.reason} for e in rejected],
    })


def create_app(store: LocalStore, engine: Optional[RemoteDiscoveryEngine] = None,
               coords: Optional[SourceCoords] = None) -> FastAPI:
    app = FastAPI(title="autogallery")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.store = store
    app.state.engine = engine
    app.state.coords = coords
    app.include_router(router)
    return app
