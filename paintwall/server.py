#!/usr/bin/env python3
"""
Paintwall Server

A FastAPI server behind the paint, gallery and display pages:
- Stores uploaded drawings in capacity-bounded batch folders
- Moves deleted drawings to a trash bin and restores them
- Lays the live batch out onto fixed display slots
- Serves uploads and static files (HTML, scripts)

Usage (from project root):
    uvicorn paintwall.server:app --reload --port 3000
    # Then open http://localhost:3000/
"""

import base64
import binascii
import json
import logging
import re
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel

from .config import load_config, resolve_path
from .database import MemorySessionStore, SessionStore, verify_password
from .errors import (
    NotFoundError,
    PaintwallError,
    PayloadTooLargeError,
    Unauthorized,
    ValidationError,
)
from .gallery import Gallery
from .layout import LayoutParams
from .paths import resolve_within

# Logging setup
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S"
)
logger = logging.getLogger(__name__)

# ============================================
# CONFIGURATION
# ============================================

MIME_TYPES = {
    ".html": "text/html; charset=utf-8",
    ".js": "text/javascript; charset=utf-8",
    ".css": "text/css; charset=utf-8",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".svg": "image/svg+xml",
    ".json": "application/json; charset=utf-8",
}

DATA_URL_PATTERN = re.compile(r"^data:image/png;base64,(.+)$", re.DOTALL)


# ============================================
# PYDANTIC MODELS
# ============================================

class LoginRequest(BaseModel):
    password: Optional[str] = None


class RestoreRequest(BaseModel):
    id: Optional[str] = None


class SelectBatchRequest(BaseModel):
    index: Any = None


# ============================================
# DEPENDENCIES
# ============================================

def get_config(request: Request) -> dict:
    return request.app.state.config


def get_gallery(request: Request) -> Gallery:
    return request.app.state.gallery


def get_sessions(request: Request) -> SessionStore:
    return request.app.state.sessions


def auth_required(config: dict) -> bool:
    return bool(config["auth"]["password"])


def require_admin(
    request: Request,
    config: dict = Depends(get_config),
    sessions: SessionStore = Depends(get_sessions),
) -> Optional[str]:
    """Dependency that requires a valid session cookie when a password is configured."""
    if not auth_required(config):
        return None

    token = request.cookies.get(config["auth"]["cookie_name"])
    if not sessions.get(token):
        raise Unauthorized()
    return token


async def read_json_body(request: Request) -> Any:
    """
    Read and parse a JSON body, refusing bodies over upload.max_body_bytes.

    The size is counted while streaming so requests without a Content-Length
    header are capped too.
    """
    limit = request.app.state.config["upload"]["max_body_bytes"]
    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise PayloadTooLargeError()

    if not body.strip():
        return {}
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Invalid JSON body")


router = APIRouter()


# ============================================
# STATUS ENDPOINTS
# ============================================

@router.get("/api/health")
async def health(request: Request, gallery: Gallery = Depends(get_gallery)):
    """Health check endpoint."""
    uptime = (datetime.now() - request.app.state.start_time).total_seconds()

    return {
        "status": "ok",
        "uptime_seconds": int(uptime),
        "total_images": len(gallery.ordered()),
    }


@router.get("/api/config")
async def get_client_config(config: dict = Depends(get_config)):
    """
    Get display configuration for the frontend.
    Note: Sensitive values (like the admin password) are excluded.
    """
    layout = config["layout"]
    return {
        "polling": config["polling"],
        "stage": {
            "width": layout["stage_width"],
            "height": layout["stage_height"],
            "overlayLeft": layout["overlay_left"],
            "overlayWidth": layout["overlay_width"],
            "overlayHeight": layout["overlay_height"],
        },
        "layoutMode": layout["mode"],
        "batchSize": config["batches"]["folder_size"],
    }


# ============================================
# AUTH ENDPOINTS
# ============================================

@router.post("/api/login")
async def login(
    body: LoginRequest,
    response: Response,
    config: dict = Depends(get_config),
    sessions: SessionStore = Depends(get_sessions),
):
    """Admin login. Sets the session cookie on success."""
    if not auth_required(config):
        return {"ok": True}

    if not verify_password(body.password or "", config["auth"]["password"]):
        logger.warning("Login failed: wrong password")
        raise Unauthorized("Invalid password")

    token = sessions.create()
    response.set_cookie(
        config["auth"]["cookie_name"],
        token,
        httponly=True,
        samesite="lax",
        max_age=int(config["auth"]["session_hours"] * 3600),
    )
    logger.info("Admin logged in")
    return {"ok": True}


@router.post("/api/logout")
async def logout(
    request: Request,
    response: Response,
    config: dict = Depends(get_config),
    sessions: SessionStore = Depends(get_sessions),
):
    """Invalidate the session and clear its cookie."""
    cookie_name = config["auth"]["cookie_name"]
    if sessions.revoke(request.cookies.get(cookie_name)):
        logger.info("Admin logged out")
    response.delete_cookie(cookie_name)
    return {"ok": True}


@router.get("/api/session")
async def session_status(
    request: Request,
    config: dict = Depends(get_config),
    sessions: SessionStore = Depends(get_sessions),
):
    """Whether the login gate is active and the caller passes it."""
    required = auth_required(config)
    token = request.cookies.get(config["auth"]["cookie_name"])
    return {
        "required": required,
        "authenticated": (not required) or sessions.get(token) is not None,
    }


# ============================================
# IMAGE ENDPOINTS
# ============================================

@router.get("/api/list")
async def list_images(folder: Optional[str] = None, gallery: Gallery = Depends(get_gallery)):
    """All uploaded images oldest first, or the images of one batch folder."""
    return gallery.list_images(folder)


@router.get("/api/folders")
async def list_folders(gallery: Gallery = Depends(get_gallery), _: Optional[str] = Depends(require_admin)):
    """Batch folders with their image counts."""
    return gallery.list_folders()


@router.post("/api/upload")
async def upload(request: Request, gallery: Gallery = Depends(get_gallery)):
    """
    Store a drawing sent as {"dataUrl": "data:image/png;base64,..."}.

    Returns the stored filename, its path and its URL.
    """
    body = await read_json_body(request)
    data_url = body.get("dataUrl") if isinstance(body, dict) else None
    if not data_url or not isinstance(data_url, str):
        raise ValidationError("Missing dataUrl")

    match = DATA_URL_PATTERN.match(data_url)
    if not match:
        raise ValidationError("Invalid image format")

    try:
        png_bytes = base64.b64decode(match.group(1))
    except (binascii.Error, ValueError):
        raise ValidationError("Invalid image data")
    if not png_bytes:
        raise ValidationError("Empty image")

    return gallery.save_upload(png_bytes)


@router.api_route("/api/delete", methods=["DELETE", "POST"])
async def delete_image(
    request: Request,
    path: Optional[str] = None,
    filename: Optional[str] = None,
    gallery: Gallery = Depends(get_gallery),
    _: Optional[str] = Depends(require_admin),
):
    """
    Move an image to the trash.

    The target comes from the query string (?path= or ?filename=) or, for
    POST, from a JSON body with the same keys.
    """
    if not path and not filename and request.method == "POST":
        body = await read_json_body(request)
        if isinstance(body, dict):
            path = body.get("path")
            filename = body.get("filename")

    if path and isinstance(path, str):
        entry = gallery.delete(path)
    elif filename and isinstance(filename, str):
        entry = gallery.delete(filename, by_filename=True)
    else:
        raise ValidationError("Missing path")

    return {"path": entry.trashed_path}


@router.get("/api/trash")
async def list_trash(gallery: Gallery = Depends(get_gallery), _: Optional[str] = Depends(require_admin)):
    """Trashed images whose files still exist, newest first."""
    return gallery.list_trash()


@router.post("/api/restore")
async def restore_image(
    body: RestoreRequest,
    gallery: Gallery = Depends(get_gallery),
    _: Optional[str] = Depends(require_admin),
):
    """Restore a trashed image by its manifest id."""
    if not body.id:
        raise ValidationError("Missing id")
    return {"path": gallery.restore(body.id)}


@router.post("/api/rebalance")
async def rebalance(gallery: Gallery = Depends(get_gallery), _: Optional[str] = Depends(require_admin)):
    """
    Repack batch folders now.

    Use this after adding or removing files by hand.
    """
    return {"moved": gallery.rebalance()}


# ============================================
# BATCH / DISPLAY ENDPOINTS
# ============================================

@router.get("/api/batches")
async def list_batches(gallery: Gallery = Depends(get_gallery), _: Optional[str] = Depends(require_admin)):
    """The upload order in batches, with the batch live on the display."""
    return gallery.batches()


@router.post("/api/batches/select")
async def select_batch(
    body: SelectBatchRequest,
    gallery: Gallery = Depends(get_gallery),
    _: Optional[str] = Depends(require_admin),
):
    """Choose which batch the display shows."""
    gallery.select_batch(body.index)
    return {"ok": True}


@router.get("/api/slots")
async def list_slots(
    request: Request,
    config: dict = Depends(get_config),
    gallery: Gallery = Depends(get_gallery),
):
    """
    Positioned images for the display overlay.

    Polled by the display page; returns one item per filled slot.
    """
    return gallery.slots(
        request.app.state.layout,
        mode=config["layout"]["mode"],
        slot_file=request.app.state.slot_file,
    )


# ============================================
# STATIC FILE SERVING
# ============================================

def file_response(file_path: Path) -> FileResponse:
    media_type = MIME_TYPES.get(file_path.suffix.lower(), "application/octet-stream")
    return FileResponse(file_path, media_type=media_type)


@router.get("/uploads/{rel_path:path}")
async def uploaded_file(rel_path: str, gallery: Gallery = Depends(get_gallery)):
    """Serve an uploaded (or trashed) image."""
    file_path = resolve_within(gallery.upload_root, rel_path, decode=False)
    if not file_path.is_file():
        raise NotFoundError(f"File not found: {rel_path}")
    return file_response(file_path)


@router.get("/{filename:path}")
async def static_files(request: Request, filename: str):
    """Serve the paint, gallery and display pages and their assets."""
    public_root = request.app.state.public_root
    file_path = resolve_within(public_root, filename or "index.html", decode=False)
    if file_path.is_dir():
        file_path = file_path / "index.html"

    if file_path.is_file():
        return file_response(file_path)

    raise NotFoundError(f"File not found: {filename}")


# ============================================
# ERROR HANDLING
# ============================================

async def paintwall_error_handler(request: Request, exc: PaintwallError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    headers = {"Connection": "close"} if isinstance(exc, PayloadTooLargeError) else None
    return JSONResponse({"detail": exc.message}, status_code=exc.status_code, headers=headers)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse({"detail": "Invalid request body"}, status_code=400)


async def os_error_handler(request: Request, exc: OSError):
    if isinstance(exc, FileNotFoundError):
        return JSONResponse({"detail": "Not found"}, status_code=404)
    logger.exception(f"{request.method} {request.url.path} failed", exc_info=exc)
    return JSONResponse({"detail": "Server error"}, status_code=500)


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"{request.method} {request.url.path} failed", exc_info=exc)
    return JSONResponse({"detail": "Server error"}, status_code=500)


# ============================================
# APPLICATION
# ============================================

def create_app(config: Optional[dict] = None) -> FastAPI:
    """
    Build the application.

    Args:
        config: Complete configuration (see config.py); loaded from
            config.yaml when omitted
    """
    config = config or load_config()

    app = FastAPI(
        title="Paintwall",
        description="Stores drawings and lays them out for the shared display",
        version="1.0.0"
    )

    # CORS middleware for development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    upload_root = resolve_path(config, "uploads")
    app.state.config = config
    app.state.gallery = Gallery.from_config(config, upload_root, resolve_path(config, "data"))
    app.state.sessions = MemorySessionStore(timedelta(hours=config["auth"]["session_hours"]))
    app.state.layout = LayoutParams.from_config(config["layout"])
    app.state.slot_file = resolve_path(config, "slots")
    app.state.public_root = resolve_path(config, "public")
    app.state.start_time = datetime.now()

    max_body_bytes = config["upload"]["max_body_bytes"]

    @app.middleware("http")
    async def limit_body_size(request: Request, call_next):
        """Refuse requests that declare a body over the cap."""
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > max_body_bytes:
            logger.warning(f"Rejected {request.method} {request.url.path}: body of {content_length} bytes")
            return JSONResponse(
                {"detail": "Payload too large"},
                status_code=413,
                headers={"Connection": "close"},
            )
        return await call_next(request)

    app.add_exception_handler(PaintwallError, paintwall_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(OSError, os_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.on_event("startup")
    async def startup():
        """Initialize server on startup."""
        gallery = app.state.gallery
        logger.info("=" * 50)
        logger.info("Paintwall server starting...")
        logger.info("=" * 50)
        gallery.ensure_dirs()
        logger.info(f"Uploads: {gallery.upload_root}")
        logger.info(f"Layout mode: {config['layout']['mode']}, batch size: {gallery.folder_size}")
        if auth_required(config):
            logger.info("Login gate enabled")
        moved = gallery.try_rebalance()
        if moved:
            logger.info(f"Startup rebalance moved {moved} files")
        logger.info("Server ready!")

    app.include_router(router)
    return app


app = create_app()


# ============================================
# MAIN ENTRY POINT
# ============================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=3000)
