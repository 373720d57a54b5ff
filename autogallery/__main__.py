from pathlib import Path
import logging
import os
import threading
import uvicorn
from dotenv import load_dotenv
from .cache import DiscoveryCache
from .config import AppCfg
from .discovery import RemoteDiscoveryEngine
from .errors import ImagesNotFound
from .server import create_app
from .storage import SqliteStorage
from .store import LocalStore

CFG_PATH = Path("config/autogallery.yaml")

log = logging.getLogger("autogallery")


def setup_logging(cfg: AppCfg):
    level = os.environ.get("LOGLEVEL", cfg.logging.level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
    )


def main():
    load_dotenv()
    cfg = AppCfg.load(Path(os.environ.get("AUTOGALLERY_CONFIG", CFG_PATH)))
    setup_logging(cfg)

    storage = SqliteStorage(cfg.store.db, quota_bytes=cfg.store.quota_bytes)
    store = LocalStore(storage, storage_key=cfg.store.storage_key,
                       max_upload_bytes=cfg.store.max_upload_bytes,
                       collation_locale=cfg.store.collation_locale)
    store.load()
    removed = store.repair()
    if removed:
        log.warning(f"removed {removed} corrupt records at startup")

    engine = None
    coords = None
    if cfg.mode == "remote":
        coords = cfg.remote.coords()
        engine = RemoteDiscoveryEngine(cfg.remote, cache=DiscoveryCache(cfg.remote.cache_ttl_s, storage=storage))

        # Warm the cache before the first request
        def warm():
            try:
                engine.discover(coords)
            except ImagesNotFound as e:
                log.warning(str(e))

        threading.Thread(target=warm, daemon=True).start()

    app = create_app(store, engine, coords)
    try:
        uvicorn.run(app, host=cfg.server.host, port=cfg.server.port, log_level="warning")
    finally:
        if engine is not None:
            engine.close()
        store.close()

if __name__ == "__main__":
    main()
