"""FastAPI server: demo pages, static assets and the gesture log endpoint."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool

from api.gesture_log import GestureLog, GestureValidationError, validate_gesture
from utils.log_utils import log
from utils.settings_store import get_settings, resolve_path


def _page_response(templates_dir: Path, name: str) -> FileResponse:
    path = templates_dir / f"{name}.html"
    if not path.is_file():
        raise HTTPException(status_code=404, detail="Not Found")
    return FileResponse(path, media_type="text/html")


def create_app(settings: Optional[Mapping[str, Any]] = None) -> FastAPI:
    settings = dict(settings if settings is not None else get_settings())
    templates_dir = resolve_path(settings.get("templates_dir", "templates"))
    public_dir = resolve_path(settings.get("public_dir", "public"))
    gesture_log = GestureLog(
        resolve_path(settings.get("gesture_log_dir", "logs")),
        settings.get("gesture_log_file", "gestures.log"),
    )

    app = FastAPI(title="Landmark Detection Demo", version="0.1.0")
    app.state.gesture_log = gesture_log
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.mount("/public", StaticFiles(directory=public_dir, check_dir=False), name="public")

    @app.get("/")
    def index():
        return _page_response(templates_dir, "index")

    @app.post("/save-gesture")
    async def save_gesture(request: Request):
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            payload = {}
        try:
            gesture = validate_gesture(payload)
        except GestureValidationError as exc:
            return JSONResponse(status_code=400, content={"errors": exc.errors})

        try:
            await run_in_threadpool(gesture_log.append, gesture)
        except OSError as exc:
            log("SERVER", f"Error writing to {gesture_log.path}: {exc}", "ERROR")
            return JSONResponse(status_code=500, content={"message": "Internal Server Error"})

        log("SERVER", f'Gesture "{gesture.value}" received and written to {gesture_log.path}')
        return {"message": f'Gesture "{gesture.value}" received and logged.'}

    @app.get("/{page}")
    def page(page: str):
        return _page_response(templates_dir, page)

    return app


app = create_app()


def serve(host: Optional[str] = None, port: Optional[int] = None) -> None:
    settings = get_settings()
    host = host or str(settings.get("api_host", "127.0.0.1"))
    port = int(port or settings.get("api_port", 3000))
    log_level = str(settings.get("log_level", "INFO")).upper()
    if log_level == "DEEP":
        log_level = "DEBUG"
    display_host = "localhost" if host in {"127.0.0.1", "0.0.0.0"} else host
    log("SERVER", f"Server is running on http://{display_host}:{port}")
    uvicorn.run(
        "api.server:app",
        host=host,
        port=port,
        log_level=log_level.lower(),
        access_log=bool(settings.get("http_access_log", False)),
    )


if __name__ == "__main__":
    serve()
