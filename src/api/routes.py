"""FastAPI API routes for agroSage.

Service dependencies are resolved from ``app.state`` (populated at startup
in ``main.py``'s ``_build_all``) via ``Depends`` using the ``Annotated``
pattern.  Every route except ``/health`` requires a user token.

Endpoint                                   Method  Description
-----------------------------------------  ------  ---------------------------------
/api/v1/crop-suggestions                   POST    Start a crop suggestion run (202)
/api/v1/disease-detections                 POST    Start a disease detection run (202)
/api/v1/runs/{run_id}                      GET     Latest status of one of my runs
/api/v1/crop-suggestions/history           GET     My suggestion history, paged
/api/v1/crop-suggestions/history/{id}      GET     One suggestion entry with its crops
/api/v1/disease-detections/history         GET     My detection history, paged
/api/v1/disease-detections/history/{id}    GET     One detection entry with its disease
/api/v1/crops/{slug}                       GET     Public crop fields
/api/v1/crops/{slug}/details               GET     Crop enrichment document
/api/v1/garden                             PUT     Store my garden profile
/api/v1/garden                             GET     Read my garden profile
/api/v1/garden/crops                       POST    Add a crop to my garden (202)
/api/v1/garden/crops                       GET     My active garden crops
/api/v1/garden/guides/{id}                 GET     One of my planting guides
/api/v1/health                             GET     Health check + provider names

Upload runs return 202 as soon as the request is validated and the image
is in temp storage.  Progress, the result and any failure are delivered
over the notification socket; ``GET /runs/{run_id}`` is the polling
fallback.
"""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from pydantic import ValidationError

from src.api.auth import CurrentUserDep
from src.api.schemas import (
    ErrorResponse,
    GardenCropAcceptedResponse,
    GardenCropCreateRequest,
    GardenProfileRequest,
    HealthResponse,
    HistoryPageResponse,
    RunAcceptedResponse,
    RunStatusResponse,
)
from src.interfaces.knowledge_store import IKnowledgeStore
from src.interfaces.temp_file_store import ITempFileStore
from src.models.history import GardenProfile
from src.models.requests import (
    DetectionRequest,
    GardenCropRequest,
    SuggestionMode,
    SuggestionRequest,
    TempFileHandle,
)
from src.pipeline.crop_suggestion import CropSuggestionPipeline
from src.pipeline.disease_detection import DiseaseDetectionPipeline
from src.pipeline.garden import GardenPlanner
from src.pipeline.progress_tracker import ProgressTracker
from src.utils.errors import UploadRejectedError
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

_UPLOAD_CHUNK_SIZE = 64 * 1024

router = APIRouter(prefix="/api/v1")


# ---------------------------------------------------------------------------
# Dependency helpers
# ---------------------------------------------------------------------------


def _get_store(request: Request) -> IKnowledgeStore:
    return request.app.state.knowledge_store


def _get_temp_files(request: Request) -> ITempFileStore:
    return request.app.state.temp_files


def _get_tracker(request: Request) -> ProgressTracker:
    return request.app.state.progress_tracker


def _get_crop_pipeline(request: Request) -> CropSuggestionPipeline:
    return request.app.state.crop_suggestion_pipeline


def _get_disease_pipeline(request: Request) -> DiseaseDetectionPipeline:
    return request.app.state.disease_detection_pipeline


def _get_garden_planner(request: Request) -> GardenPlanner:
    return request.app.state.garden_planner


StoreDep = Annotated[IKnowledgeStore, Depends(_get_store)]
TempFilesDep = Annotated[ITempFileStore, Depends(_get_temp_files)]
TrackerDep = Annotated[ProgressTracker, Depends(_get_tracker)]
CropPipelineDep = Annotated[CropSuggestionPipeline, Depends(_get_crop_pipeline)]
DiseasePipelineDep = Annotated[DiseaseDetectionPipeline, Depends(_get_disease_pipeline)]
GardenPlannerDep = Annotated[GardenPlanner, Depends(_get_garden_planner)]

PageQuery = Annotated[int, Query(ge=1)]
LimitQuery = Annotated[int, Query(ge=1, le=100)]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _stash_upload(upload: UploadFile, temp_files: ITempFileStore) -> TempFileHandle:
    """Validate an upload and write it to temp storage.

    The type is checked before reading, and the body is read in chunks so
    an oversized file is rejected after buffering at most the limit.
    """
    content_type = upload.content_type or ""
    allowed = temp_files.allowed_types()
    if content_type not in allowed:
        raise UploadRejectedError(
            message=f"Unsupported file type: {content_type}. Allowed: {', '.join(sorted(allowed))}",
            status_code=415,
        )

    max_bytes = temp_files.max_bytes()
    chunks: list[bytes] = []
    total_size = 0
    while True:
        chunk = await upload.read(_UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > max_bytes:
            raise UploadRejectedError(
                message=f"File exceeds the {max_bytes // (1024 * 1024)} MB limit",
                status_code=413,
            )
        chunks.append(chunk)

    return await temp_files.store(b"".join(chunks), upload.filename or "upload", content_type)


def _unprocessable(exc: ValidationError) -> HTTPException:
    errors = [
        {"loc": [str(part) for part in err["loc"]], "msg": err["msg"]}
        for err in exc.errors()
    ]
    return HTTPException(status_code=422, detail=errors)


def _split_crops(values: list[str] | None) -> list[str]:
    """Accept repeated form fields and/or comma-separated lists."""
    crops: list[str] = []
    for value in values or []:
        crops.extend(part.strip() for part in value.split(",") if part.strip())
    return crops


def _page_response(items: list[Any], total: int, page: int, limit: int) -> HistoryPageResponse:
    return HistoryPageResponse(
        items=[item.to_public() for item in items],
        page=page,
        limit=limit,
        total=total,
    )


# ---------------------------------------------------------------------------
# Pipeline runs
# ---------------------------------------------------------------------------


@router.post(
    "/crop-suggestions",
    status_code=202,
    response_model=RunAcceptedResponse,
    responses={
        404: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        415: {"model": ErrorResponse},
    },
    summary="Start a crop suggestion run",
)
async def create_crop_suggestion(
    user_id: CurrentUserDep,
    store: StoreDep,
    temp_files: TempFilesDep,
    pipeline: CropPipelineDep,
    mode: Annotated[SuggestionMode, Form()] = SuggestionMode.MANUAL,
    plant_type: Annotated[str, Form()] = "",
    garden_type: Annotated[str, Form()] = "",
    gardener_type: Annotated[str, Form()] = "",
    city: Annotated[str, Form()] = "",
    state: Annotated[str, Form()] = "",
    country: Annotated[str, Form()] = "",
    latitude: Annotated[float | None, Form()] = None,
    longitude: Annotated[float | None, Form()] = None,
    area: Annotated[float | None, Form()] = None,
    soil_type: Annotated[str | None, Form()] = None,
    sunlight: Annotated[str | None, Form()] = None,
    water_source: Annotated[str | None, Form()] = None,
    purpose: Annotated[str | None, Form()] = None,
    current_crops: Annotated[list[str] | None, Form()] = None,
    avoid_current_crops: Annotated[bool, Form()] = False,
    image: Annotated[UploadFile | None, File()] = None,
) -> RunAcceptedResponse:
    """Validate the garden description, stash the optional image, and start a run."""
    try:
        if mode == SuggestionMode.AUTO:
            profile = await store.get_garden_profile(user_id)
            if profile is None:
                raise HTTPException(status_code=404, detail="No garden profile stored for this user")
            suggestion = SuggestionRequest.from_garden(profile, avoid_current_crops=avoid_current_crops)
        else:
            suggestion = SuggestionRequest(
                user_id=user_id,
                mode=mode,
                plant_type=plant_type,
                garden_type=garden_type,
                gardener_type=gardener_type,
                city=city,
                state=state,
                country=country,
                latitude=latitude,
                longitude=longitude,
                area=area,
                soil_type=soil_type,
                sunlight=sunlight,
                water_source=water_source,
                purpose=purpose,
                current_crops=_split_crops(current_crops),
                avoid_current_crops=avoid_current_crops,
            )
    except ValidationError as exc:
        raise _unprocessable(exc) from exc

    if image is not None and (image.filename or image.size):
        handle = await _stash_upload(image, temp_files)
        suggestion = suggestion.model_copy(update={"image": handle})

    run_id = pipeline.submit(suggestion)
    _logger.info(
        "crop_suggestion_accepted",
        run_id=run_id,
        user_id=user_id,
        mode=suggestion.mode.value,
        has_image=suggestion.image is not None,
    )
    return RunAcceptedResponse(message="Crop suggestion started", run_id=run_id)


@router.post(
    "/disease-detections",
    status_code=202,
    response_model=RunAcceptedResponse,
    responses={413: {"model": ErrorResponse}, 415: {"model": ErrorResponse}},
    summary="Start a disease detection run",
)
async def create_disease_detection(
    user_id: CurrentUserDep,
    temp_files: TempFilesDep,
    pipeline: DiseasePipelineDep,
    crop_name: Annotated[str, Form(min_length=1)],
    image: Annotated[UploadFile, File()],
    description: Annotated[str | None, Form()] = None,
) -> RunAcceptedResponse:
    """Stash the crop photo and start a detection run."""
    handle = await _stash_upload(image, temp_files)
    try:
        detection = DetectionRequest(
            user_id=user_id,
            crop_name=crop_name.strip(),
            description=(description or "").strip() or None,
            image=handle,
        )
    except ValidationError as exc:
        await temp_files.delete(handle)
        raise _unprocessable(exc) from exc

    run_id = pipeline.submit(detection)
    _logger.info("disease_detection_accepted", run_id=run_id, user_id=user_id)
    return RunAcceptedResponse(message="Disease detection started", run_id=run_id)


@router.get(
    "/runs/{run_id}",
    response_model=RunStatusResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Latest status of a run",
)
async def get_run_status(run_id: str, user_id: CurrentUserDep, tracker: TrackerDep) -> RunStatusResponse:
    snapshot = tracker.get_status(run_id)
    if snapshot is None or snapshot.user_id != user_id:
        raise HTTPException(status_code=404, detail=f"Unknown run: {run_id}")
    return RunStatusResponse.from_snapshot(snapshot)


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


@router.get(
    "/crop-suggestions/history",
    response_model=HistoryPageResponse,
    summary="Crop suggestion history, newest first",
)
async def list_crop_suggestions(
    user_id: CurrentUserDep,
    store: StoreDep,
    page: PageQuery = 1,
    limit: LimitQuery = 10,
) -> HistoryPageResponse:
    items, total = await store.list_crop_suggestion_history(user_id, page=page, limit=limit)
    return _page_response(items, total, page, limit)


@router.get(
    "/crop-suggestions/history/{history_id}",
    responses={404: {"model": ErrorResponse}},
    summary="One crop suggestion entry with its crops",
)
async def get_crop_suggestion(history_id: str, user_id: CurrentUserDep, store: StoreDep) -> dict[str, Any]:
    history = await store.get_crop_suggestion_history(user_id, history_id)
    if history is None:
        raise HTTPException(status_code=404, detail=f"No crop suggestion: {history_id}")

    crops = []
    for crop_id in history.crop_ids:
        crop = await store.get_crop(crop_id)
        if crop is not None:
            crops.append(crop.to_public())
    return {**history.to_public(), "crops": crops}


@router.get(
    "/disease-detections/history",
    response_model=HistoryPageResponse,
    summary="Disease detection history, newest first",
)
async def list_disease_detections(
    user_id: CurrentUserDep,
    store: StoreDep,
    page: PageQuery = 1,
    limit: LimitQuery = 10,
) -> HistoryPageResponse:
    items, total = await store.list_disease_detection_history(user_id, page=page, limit=limit)
    return _page_response(items, total, page, limit)


@router.get(
    "/disease-detections/history/{history_id}",
    responses={404: {"model": ErrorResponse}},
    summary="One disease detection entry with its disease",
)
async def get_disease_detection(history_id: str, user_id: CurrentUserDep, store: StoreDep) -> dict[str, Any]:
    history = await store.get_disease_detection_history(user_id, history_id)
    if history is None:
        raise HTTPException(status_code=404, detail=f"No disease detection: {history_id}")

    disease = None
    if history.detected_disease.id:
        record = await store.get_disease(history.detected_disease.id)
        disease = record.to_public() if record is not None else None
    return {**history.to_public(), "disease": disease}


# ---------------------------------------------------------------------------
# Knowledge records
# ---------------------------------------------------------------------------


@router.get("/crops/{slug}", responses={404: {"model": ErrorResponse}}, summary="Public crop fields")
async def get_crop(slug: str, _user_id: CurrentUserDep, store: StoreDep) -> dict[str, Any]:
    crop = await store.get_crop_by_slug(slug)
    if crop is None:
        raise HTTPException(status_code=404, detail=f"No crop: {slug}")
    return crop.to_public()


@router.get(
    "/crops/{slug}/details",
    responses={404: {"model": ErrorResponse}},
    summary="Crop enrichment document",
)
async def get_crop_details(slug: str, _user_id: CurrentUserDep, store: StoreDep) -> dict[str, Any]:
    details = await store.get_crop_details_by_slug(slug)
    if details is None:
        raise HTTPException(status_code=404, detail=f"No details for crop: {slug}")
    return details.to_public()


# ---------------------------------------------------------------------------
# Garden profile
# ---------------------------------------------------------------------------


@router.put("/garden", summary="Store the caller's garden profile")
async def put_garden(body: GardenProfileRequest, user_id: CurrentUserDep, store: StoreDep) -> dict[str, Any]:
    profile = GardenProfile(user_id=user_id, **body.model_dump())
    saved = await store.save_garden_profile(profile)
    return saved.to_public()


@router.get("/garden", responses={404: {"model": ErrorResponse}}, summary="Read the caller's garden profile")
async def get_garden(user_id: CurrentUserDep, store: StoreDep) -> dict[str, Any]:
    profile = await store.get_garden_profile(user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="No garden profile stored for this user")
    return profile.to_public()


# ---------------------------------------------------------------------------
# Garden crops
# ---------------------------------------------------------------------------


@router.post(
    "/garden/crops",
    status_code=202,
    response_model=GardenCropAcceptedResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Add a stored crop to the caller's garden",
)
async def add_garden_crop(
    body: GardenCropCreateRequest,
    user_id: CurrentUserDep,
    store: StoreDep,
    planner: GardenPlannerDep,
) -> GardenCropAcceptedResponse:
    """Check the garden and the crop exist, then generate the planting guide in the background."""
    if await store.get_garden_profile(user_id) is None:
        raise HTTPException(status_code=404, detail="No garden profile stored for this user")
    crop = await store.get_crop(body.crop_id)
    if crop is None:
        raise HTTPException(status_code=404, detail=f"No crop: {body.crop_id}")

    message = planner.submit(GardenCropRequest(user_id=user_id, crop=crop))
    _logger.info("garden_crop_accepted", user_id=user_id, crop_id=crop.id)
    return GardenCropAcceptedResponse(message=message, crop_id=crop.id)


@router.get("/garden/crops", summary="Crops in the caller's garden, newest first")
async def list_garden_crops(user_id: CurrentUserDep, store: StoreDep) -> list[dict[str, Any]]:
    crops = await store.list_garden_crops(user_id)
    return [crop.to_public() for crop in crops]


@router.get(
    "/garden/guides/{guide_id}",
    responses={404: {"model": ErrorResponse}},
    summary="One of the caller's planting guides",
)
async def get_planting_guide(guide_id: str, user_id: CurrentUserDep, store: StoreDep) -> dict[str, Any]:
    guide = await store.get_planting_guide(user_id, guide_id)
    if guide is None:
        raise HTTPException(status_code=404, detail=f"No planting guide: {guide_id}")
    return guide.to_public()


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health_check(request: Request) -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=request.app.version,
        providers=dict(request.app.state.provider_names),
    )
