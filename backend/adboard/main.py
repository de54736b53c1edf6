"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the classifieds backend.
Controllers are intentionally thin: they accept requests, delegate to
services, and return JSON (or raw image) responses.

Endpoints implemented:
- POST /login, POST /register
- GET /ads, POST /ads, GET /ads/me
- GET|PATCH|DELETE /ads/{id}
- GET|PATCH /ads/{id}/image
- GET|POST /ads/{id}/comments
- PATCH|DELETE /ads/{adId}/comments/{commentId}
- GET|PATCH /users/me, POST /users/set_password
- PATCH /users/me/image, GET /users/{id}/image
- GET /health
"""

from fastapi import FastAPI, Depends, UploadFile, File, Form, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError as SchemaValidationError
from sqlmodel import Session
from starlette.datastructures import UploadFile as StarletteUploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import Optional, Union
import io
import json
import logging
import time
import uuid
from PIL import Image
from .database import create_db_and_tables, engine, get_session
from . import services, models, schemas
from .auth import get_current_user
from .config import settings
from .errors import AppError, UnauthorizedError, ValidationError
from .seed import seed_demo_users
from .storage import ImageStore, ImageUpload

app = FastAPI(title="Classifieds API")
logger = logging.getLogger("adboard.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

image_store = ImageStore(settings.UPLOAD_ROOT)


def _bootstrap():
    """Create tables and the upload root, and seed demo users in dev."""
    create_db_and_tables()
    image_store.init()
    if settings.SEED_DEMO_USERS:
        with Session(engine) as session:
            seed_demo_users(session)


_bootstrap()


def get_image_store() -> ImageStore:
    return image_store


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info(
        "request_done %s",
        json.dumps(
            {
                "request_id": req_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
            },
            ensure_ascii=True,
        ),
    )
    return response


def _error(status_code: int, message: str, headers: Optional[dict] = None, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message, "status": status_code, **extra}, headers=headers)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    logger.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    headers = {"WWW-Authenticate": "Basic"} if isinstance(exc, UnauthorizedError) else None
    return _error(exc.status_code, exc.message, headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [f"{'.'.join(str(p) for p in e.get('loc', ()))}: {e.get('msg')}" for e in exc.errors()]
    logger.warning("validation failed on %s %s: %s", request.method, request.url.path, errors)
    return _error(400, "invalid request data", errors=errors)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error(500, "internal server error")


def _read_upload(file: Optional[UploadFile]) -> Optional[ImageUpload]:
    """Read an uploaded part, at most one byte past the configured cap."""
    if file is None:
        return None
    data = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    return ImageUpload(data=data, filename=file.filename, content_type=file.content_type)


def _read_ad_image(file: Optional[UploadFile]) -> Optional[ImageUpload]:
    upload = _read_upload(file)
    if upload is not None and upload.size > settings.MAX_UPLOAD_BYTES:
        raise ValidationError("file too large")
    return upload


def _image_media_type(payload: bytes) -> str:
    try:
        fmt = Image.open(io.BytesIO(payload)).format
    except Exception:
        return "application/octet-stream"
    return Image.MIME.get(fmt, "application/octet-stream")


def _ad_service(db: Session = Depends(get_session), store: ImageStore = Depends(get_image_store)) -> services.AdService:
    return services.AdService(db, store)


def _user_service(db: Session = Depends(get_session), store: ImageStore = Depends(get_image_store)) -> services.UserService:
    return services.UserService(db, store, max_avatar_bytes=settings.MAX_UPLOAD_BYTES)


# -------------------- Auth --------------------

@app.post('/login')
def login(payload: schemas.LoginIn, db: Session = Depends(get_session)):
    """Check credentials; 200 with an empty body on success, 401 otherwise.

    The client keeps sending the same credentials as HTTP Basic auth on
    every protected request.
    """
    if not services.AuthService(db).login(payload.username, payload.password):
        raise UnauthorizedError("invalid credentials")
    return Response(status_code=200)


@app.post('/register')
def register(payload: schemas.RegisterIn, db: Session = Depends(get_session)):
    """Register a new user; 400 if the email is already taken."""
    if not services.AuthService(db).register(payload):
        raise ValidationError("user already exists")
    return Response(status_code=201)


# -------------------- Ads --------------------

@app.get('/ads', response_model=schemas.AdsOut)
def list_ads(svc: services.AdService = Depends(_ad_service)):
    return svc.list_all()


@app.post('/ads', status_code=201, response_model=schemas.AdOut)
def add_ad(
    properties: Union[UploadFile, str] = Form(...),
    image: Optional[UploadFile] = File(default=None),
    svc: services.AdService = Depends(_ad_service),
    user: models.User = Depends(get_current_user),
):
    """Create an ad from a multipart body.

    `properties` is a JSON document with title, price and description,
    sent either as a plain field or as an `application/json` file part;
    `image` is the ad picture and is required.
    """
    if isinstance(properties, StarletteUploadFile):
        properties = properties.file.read(settings.MAX_UPLOAD_BYTES)
    try:
        fields = schemas.CreateOrUpdateAd.model_validate_json(properties)
    except SchemaValidationError as e:
        raise ValidationError(f"invalid ad properties: {e.error_count()} error(s)")
    return svc.create(fields, _read_ad_image(image), user)


@app.get('/ads/me', response_model=schemas.AdsOut)
def my_ads(svc: services.AdService = Depends(_ad_service), user: models.User = Depends(get_current_user)):
    return svc.list_mine(user)


@app.get('/ads/{ad_id}', response_model=schemas.ExtendedAdOut)
def get_ad(ad_id: int, svc: services.AdService = Depends(_ad_service)):
    return svc.get(ad_id)


@app.patch('/ads/{ad_id}', response_model=schemas.AdOut)
def update_ad(
    ad_id: int,
    payload: schemas.CreateOrUpdateAd,
    svc: services.AdService = Depends(_ad_service),
    user: models.User = Depends(get_current_user),
):
    return svc.update(ad_id, payload, user)


@app.delete('/ads/{ad_id}', status_code=204)
def delete_ad(ad_id: int, svc: services.AdService = Depends(_ad_service), user: models.User = Depends(get_current_user)):
    svc.delete(ad_id, user)
    return Response(status_code=204)


@app.patch('/ads/{ad_id}/image')
def update_ad_image(
    ad_id: int,
    image: Optional[UploadFile] = File(default=None),
    svc: services.AdService = Depends(_ad_service),
    user: models.User = Depends(get_current_user),
):
    svc.replace_image(ad_id, _read_ad_image(image), user)
    return Response(status_code=200)


@app.get('/ads/{ad_id}/image')
def get_ad_image(ad_id: int, svc: services.AdService = Depends(_ad_service)):
    """Return the raw ad image; 404 when the ad has none."""
    payload = svc.fetch_image_bytes(ad_id)
    if not payload:
        return _error(404, "image not found")
    return Response(content=payload, media_type=_image_media_type(payload))


# -------------------- Comments --------------------

@app.get('/ads/{ad_id}/comments', response_model=schemas.CommentsOut)
def list_comments(ad_id: int, db: Session = Depends(get_session)):
    return services.CommentService(db).list(ad_id)


@app.post('/ads/{ad_id}/comments', response_model=schemas.CommentOut)
def add_comment(
    ad_id: int,
    payload: schemas.CreateOrUpdateComment,
    db: Session = Depends(get_session),
    user: models.User = Depends(get_current_user),
):
    return services.CommentService(db).create(ad_id, payload.text, user)


@app.patch('/ads/{ad_id}/comments/{comment_id}', response_model=schemas.CommentOut)
def update_comment(
    ad_id: int,
    comment_id: int,
    payload: schemas.CreateOrUpdateComment,
    db: Session = Depends(get_session),
    user: models.User = Depends(get_current_user),
):
    return services.CommentService(db).update(ad_id, comment_id, payload.text, user)


@app.delete('/ads/{ad_id}/comments/{comment_id}')
def delete_comment(
    ad_id: int,
    comment_id: int,
    db: Session = Depends(get_session),
    user: models.User = Depends(get_current_user),
):
    services.CommentService(db).delete(ad_id, comment_id, user)
    return Response(status_code=200)


# -------------------- Users --------------------

@app.get('/users/me', response_model=schemas.UserOut)
def current_user(svc: services.UserService = Depends(_user_service), user: models.User = Depends(get_current_user)):
    return svc.get_current(user)


@app.patch('/users/me', response_model=schemas.UpdateUserIn)
def update_user(
    payload: schemas.UpdateUserIn,
    svc: services.UserService = Depends(_user_service),
    user: models.User = Depends(get_current_user),
):
    return svc.update(user, payload)


@app.post('/users/set_password')
def set_password(
    payload: schemas.NewPasswordIn,
    svc: services.UserService = Depends(_user_service),
    user: models.User = Depends(get_current_user),
):
    """Change the caller's password; 403 if the current one is wrong."""
    svc.change_password(user, payload.current_password, payload.new_password)
    return Response(status_code=200)


@app.patch('/users/me/image')
def update_user_image(
    image: Optional[UploadFile] = File(default=None),
    svc: services.UserService = Depends(_user_service),
    user: models.User = Depends(get_current_user),
):
    svc.replace_avatar(user, _read_upload(image))
    return Response(status_code=200)


@app.get('/users/{user_id}/image')
def get_user_image(user_id: int, svc: services.UserService = Depends(_user_service)):
    payload = svc.fetch_avatar_bytes(user_id)
    return Response(content=payload, media_type=_image_media_type(payload))


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}
