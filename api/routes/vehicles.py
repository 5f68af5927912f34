"""
api/routes/vehicles.py -- Vehicle listing routes.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /api/vehicles              -- list, filter by ?status= and ?featured= (public)
  GET    /api/vehicles/featured     -- featured listings (public)
  POST   /api/vehicles              -- create with image upload (admin only)
  GET    /api/vehicles/{id}         -- one vehicle (public)
  PUT    /api/vehicles/{id}         -- partial update, JSON (admin only)
  DELETE /api/vehicles/{id}         -- delete (admin only)

File uploads:
  POST /vehicles accepts multipart/form-data: the vehicle fields as form
  fields (camelCase or snake_case) plus any number of "images" file parts.
  A JSON body with the same fields is also accepted (no files then).
  Each file is capped at MAX_UPLOAD_BYTES. Images are uploaded only after the
  fields validate, all at once; if any upload fails nothing is stored.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from starlette.datastructures import FormData, UploadFile

from api.body import json_body, read_json
from api.models import MessageResponse, VehicleCreate, VehicleResponse, VehicleUpdate
from auth.dependencies import require_permission
from auth.models import User
from auth.policy import Action
from core.config import get_settings
from core.uploader import ImageFile, ImageUploader
from market.models import VehicleStatus
from market.store import MarketStore

logger = logging.getLogger("automarket.api")

_settings = get_settings()

# Auth policy:
# - GET routes: public -- the storefront lists vehicles without an account
# - POST, PUT, DELETE: requires admin (manage_vehicles)
router = APIRouter()

_require_admin = require_permission(Action.manage_vehicles)

_FEATURED_LIMIT = 12
_FILE_FIELD = "images"
_LIST_FIELDS = ("features", "imageUrls", "image_urls")


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={"code": "not_found", "message": "Vehicle not found."},
    )


def _form_to_payload(form: FormData) -> dict[str, Any]:
    """Flatten multipart form fields into a dict for VehicleCreate.

    List fields may arrive as repeated keys, one JSON array, or a single
    comma-separated value.
    """
    payload: dict[str, Any] = {}
    for key in form.keys():
        if key == _FILE_FIELD:
            continue
        values = [v for v in form.getlist(key) if isinstance(v, str)]
        if key not in _LIST_FIELDS:
            if values:
                payload[key] = values[-1]
            continue
        if len(values) == 1 and values[0].lstrip().startswith("["):
            try:
                payload[key] = json.loads(values[0])
            except json.JSONDecodeError:
                payload[key] = values[0]
        elif len(values) == 1:
            payload[key] = [part.strip() for part in values[0].split(",") if part.strip()]
        else:
            payload[key] = values
    return payload


async def _read_images(form: FormData) -> list[ImageFile]:
    images: list[ImageFile] = []
    for item in form.getlist(_FILE_FIELD):
        if not isinstance(item, UploadFile):
            continue
        content = await item.read()
        if len(content) > _settings.max_upload_bytes:
            raise HTTPException(
                status_code=400,
                detail={
                    "code": "file_too_large",
                    "message": f"{item.filename} exceeds the {_settings.max_upload_bytes} byte upload limit.",
                },
            )
        if content:
            images.append(
                ImageFile(
                    filename=item.filename or "image",
                    content=content,
                    content_type=item.content_type or "application/octet-stream",
                )
            )
    return images


# ---------------------------------------------------------------------------
# Public reads
# ---------------------------------------------------------------------------


@router.get("/vehicles", response_model=list[VehicleResponse])
def list_vehicles(
    request: Request,
    status: Optional[VehicleStatus] = Query(default=None),
    featured: Optional[bool] = Query(default=None),
) -> list[VehicleResponse]:
    """List vehicles newest first."""
    store: MarketStore = request.app.state.market
    vehicles = store.list_vehicles(status=status.value if status else None, featured=featured)
    return [VehicleResponse.from_entity(v) for v in vehicles]


@router.get("/vehicles/featured", response_model=list[VehicleResponse])
def list_featured(request: Request) -> list[VehicleResponse]:
    """Featured listings for the storefront front page."""
    store: MarketStore = request.app.state.market
    vehicles = store.list_vehicles(featured=True, limit=_FEATURED_LIMIT)
    return [VehicleResponse.from_entity(v) for v in vehicles]


# ---------------------------------------------------------------------------
# POST /vehicles -- create with images
# ---------------------------------------------------------------------------


@router.post("/vehicles", response_model=VehicleResponse, status_code=201)
async def create_vehicle(
    request: Request,
    current_user: User = Depends(_require_admin),
) -> VehicleResponse:
    """Create a vehicle listing, uploading any attached images first.

    The body is parsed by hand because it is either multipart (fields +
    files) or JSON. Validation failures surface as the usual 400 envelope.
    """
    content_type = request.headers.get("content-type", "")
    images: list[ImageFile] = []
    if content_type.startswith("application/json"):
        payload = await read_json(request)
        if not isinstance(payload, dict):
            raise HTTPException(
                status_code=400,
                detail={"code": "validation_error", "message": "Request body must be a JSON object."},
            )
    else:
        form = await request.form()
        payload = _form_to_payload(form)
        images = await _read_images(form)

    try:
        body = VehicleCreate.model_validate(payload)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False)) from exc

    uploader: ImageUploader = request.app.state.uploader
    urls = await uploader.upload_many(images)

    store: MarketStore = request.app.state.market
    vehicle_id = store.create_vehicle(body.to_entity(urls))
    logger.info("Vehicle %s created by %s with %d images", vehicle_id, current_user.id, len(urls))
    return VehicleResponse.from_entity(store.get_vehicle(vehicle_id))


@router.get("/vehicles/{vehicle_id}", response_model=VehicleResponse)
def get_vehicle(request: Request, vehicle_id: str) -> VehicleResponse:
    store: MarketStore = request.app.state.market
    vehicle = store.get_vehicle(vehicle_id)
    if vehicle is None:
        raise _not_found()
    return VehicleResponse.from_entity(vehicle)


# ---------------------------------------------------------------------------
# Admin writes
# ---------------------------------------------------------------------------


@router.put("/vehicles/{vehicle_id}", response_model=VehicleResponse)
def update_vehicle(
    request: Request,
    vehicle_id: str,
    current_user: User = Depends(_require_admin),
    body: VehicleUpdate = Depends(json_body(VehicleUpdate)),
) -> VehicleResponse:
    """Apply a partial update. Fields sent as null are ignored."""
    store: MarketStore = request.app.state.market
    updates = body.model_dump(mode="json", exclude_unset=True, exclude_none=True)
    if not updates:
        raise HTTPException(
            status_code=400,
            detail={"code": "no_changes", "message": "No fields to update."},
        )
    if not store.update_vehicle(vehicle_id, **updates):
        raise _not_found()
    return VehicleResponse.from_entity(store.get_vehicle(vehicle_id))


@router.delete("/vehicles/{vehicle_id}", response_model=MessageResponse)
def delete_vehicle(
    request: Request,
    vehicle_id: str,
    current_user: User = Depends(_require_admin),
) -> MessageResponse:
    store: MarketStore = request.app.state.market
    if not store.delete_vehicle(vehicle_id):
        raise _not_found()
    logger.info("Vehicle %s deleted by %s", vehicle_id, current_user.id)
    return MessageResponse(message="Vehicle deleted.")
