import logging

from fastapi import FastAPI, Request, WebSocket
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from fastapi.websockets import WebSocketDisconnect

from . import views_admin, views_auth, views_kds, views_orders, views_pos, views_reports
from .backend import BackendError
from .config import CONFIG
from .db import create_db_and_tables, seed_if_empty
from .paths import UPLOADS_DIR
from .validation import ValidationError
from .ws import manager

logging.basicConfig(
    level=CONFIG.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("sahar")

app = FastAPI(title="SAHAR ERP")


class CachingStaticFiles(StaticFiles):
    async def get_response(self, path, scope):
        resp = await super().get_response(path, scope)
        if resp.status_code == 200:
            # uploaded names are never reused
            resp.headers["Cache-Control"] = "public, max-age=31536000, immutable"
        return resp


app.mount("/uploads", CachingStaticFiles(directory=str(UPLOADS_DIR), check_dir=False), name="uploads")


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse({"ok": False, "error": str(exc)}, status_code=400)


@app.exception_handler(BackendError)
async def backend_error_handler(request: Request, exc: BackendError):
    log.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse({"ok": False, "error": "Backend unavailable, try again"}, status_code=502)


@app.on_event("startup")
def on_startup():
    UPLOADS_DIR.mkdir(parents=True, exist_ok=True)
    create_db_and_tables()
    seed_if_empty()
    log.info("SAHAR ERP ready on %s", CONFIG.db_url)


@app.get("/health", response_class=PlainTextResponse)
def health():
    return "OK"


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await manager.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(websocket)


app.include_router(views_auth.router)
app.include_router(views_pos.router)
app.include_router(views_kds.router)
app.include_router(views_orders.router)
app.include_router(views_admin.router)
app.include_router(views_reports.router)
