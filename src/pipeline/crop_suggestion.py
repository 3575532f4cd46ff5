"""Crop suggestion pipeline.

Turns a garden description (plus optional photo) into a list of stored
crops, generating only the crops the knowledge store does not know yet.

Stages:

1. ``analyzing`` -- resolve coordinates, fetch weather averages, host the
   optional photo, ask the model for candidate ``{name, scientificName}``
   pairs.
2. ``generatingData`` -- per candidate: exact lookup by scientific name,
   then embedding similarity against search candidates, and only then a
   summary generation for a brand-new crop.
3. ``savingToDB`` -- one transaction creating the new crops and the
   history entry.
4. ``completed`` -- result event with the history id, public crop fields
   and weather.

After the result is out, each crop without a successful detail document
is enriched one by one.  An enrichment failure only affects its own crop.
"""

from __future__ import annotations

from dataclasses import dataclass

from src.interfaces.image_host import IImageHost
from src.interfaces.knowledge_store import IKnowledgeStore
from src.interfaces.stock_image_provider import IStockImageProvider
from src.interfaces.weather_provider import IWeatherProvider
from src.models.history import HostedImage
from src.models.knowledge import Crop, CropName, CropSummary, DetailStatus
from src.models.pipeline import PipelineKind, RunStatus
from src.models.requests import SuggestionRequest
from src.models.weather import Coordinates, WeatherAverages
from src.pipeline.base import GenerationPipeline, RunContext, RunResult
from src.pipeline.compensation import CompensationStack
from src.services import prompts
from src.services.generation_adapter import GenerationAdapter
from src.utils.errors import MalformedOutputError, PipelineError
from src.utils.json_parsing import parse_json_payload
from src.utils.similarity import find_best_match
from src.utils.text_normalizer import collapse_near_duplicates, normalize_identity

_IMAGE_FOLDER = "crop-suggestion"


@dataclass(frozen=True)
class _Candidate:
    """A suggested crop resolved to a stored crop or to a new summary."""

    name: CropName
    existing: Crop | None = None
    summary: CropSummary | None = None
    embedding: list[float] | None = None
    image_url: str | None = None


def parse_crop_names(raw: str, limit: int | None = None) -> list[CropName]:
    """Parse the crop-name answer into unique :class:`CropName` entries.

    Entries without both names are skipped, duplicate and near-duplicate
    scientific names keep their first occurrence.

    Raises
    ------
    MalformedOutputError
        If the answer is not a JSON array or yields no usable entry.
    """
    items = parse_json_payload(raw, expected_type=list, label="crop names")
    by_key: dict[str, CropName] = {}
    for item in items:
        if not isinstance(item, dict):
            continue
        name = str(item.get("name") or "").strip()
        scientific_name = str(item.get("scientificName") or item.get("scientific_name") or "").strip()
        if not name or not scientific_name:
            continue
        by_key.setdefault(normalize_identity(scientific_name), CropName(name=name, scientific_name=scientific_name))

    kept = collapse_near_duplicates([c.scientific_name for c in by_key.values()])
    names = [by_key[normalize_identity(s)] for s in kept]
    if not names:
        raise MalformedOutputError(message="Crop name list has no usable entries")
    return names[:limit] if limit else names


def parse_crop_summary(raw: str, expected: CropName) -> CropSummary:
    """Parse the summary answer; names are pinned to the requested candidate."""
    data = parse_json_payload(raw, expected_type=dict, label="crop summary")
    data.pop("details", None)
    data.pop("slug", None)
    data["name"] = expected.name
    data["scientificName"] = expected.scientific_name
    try:
        return CropSummary.model_validate(data)
    except ValueError as exc:
        raise MalformedOutputError(message=f"Crop summary failed validation: {exc}") from exc


class CropSuggestionPipeline(GenerationPipeline[SuggestionRequest]):
    """Generates and deduplicates crop suggestions for one garden."""

    kind = PipelineKind.CROP_SUGGESTION
    failure_message = "Failed to generate crop suggestions. Please try again."

    def __init__(
        self,
        *,
        store: IKnowledgeStore,
        generator: GenerationAdapter,
        weather: IWeatherProvider,
        image_host: IImageHost,
        stock_images: IStockImageProvider | None = None,
        similarity_threshold: float | None = None,
        forecast_days: int = 16,
        suggestion_count: int = 16,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self._store = store
        self._generator = generator
        self._weather = weather
        self._image_host = image_host
        self._stock_images = stock_images
        self._similarity_threshold = similarity_threshold
        self._forecast_days = forecast_days
        self._suggestion_count = suggestion_count

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _execute(
        self,
        request: SuggestionRequest,
        ctx: RunContext,
        compensations: CompensationStack,
    ) -> RunResult:
        await ctx.advance(RunStatus.ANALYZING, 10, "Analyzing location and weather")
        coordinates = await self._resolve_coordinates(request)
        weather = await self._weather.averages_over_days(
            coordinates.latitude, coordinates.longitude, self._forecast_days
        )
        await ctx.advance(RunStatus.ANALYZING, 20, "Weather data collected")

        image, image_bytes = await self._host_image(request, compensations)
        names = await self._generate(
            "crop_names",
            lambda: self._suggest_names(request, weather, image_bytes),
        )
        await ctx.advance(RunStatus.ANALYZING, 30, f"{len(names)} crops suggested")

        await ctx.advance(RunStatus.GENERATING_DATA, 40, "Matching suggestions with known crops")
        candidates: list[_Candidate] = []
        for index, name in enumerate(names, start=1):
            candidates.append(await self._resolve_candidate(name))
            await ctx.advance(
                RunStatus.GENERATING_DATA,
                40 + (30 * index) // len(names),
                f"Prepared {index} of {len(names)} crops",
            )

        await ctx.advance(RunStatus.SAVING_TO_DB, 80, "Saving crop suggestions")
        crops, history_id = await self._persist(request, candidates, coordinates, weather, image)

        self._logger.info(
            "crop_suggestions_ready",
            history_id=history_id,
            crops=len(crops),
            new=sum(1 for c in candidates if c.existing is None),
        )
        payload = {
            "historyId": history_id,
            "crops": [crop.to_public() for crop in crops],
            "weather": weather.to_public(),
        }
        return RunResult(payload=payload, records=crops)

    async def _resolve_coordinates(self, request: SuggestionRequest) -> Coordinates:
        if request.latitude is not None and request.longitude is not None:
            return Coordinates(latitude=request.latitude, longitude=request.longitude)
        coordinates = await self._weather.resolve_coordinates(
            request.city, request.state or None, request.country
        )
        if coordinates is None:
            raise PipelineError(message=f"Could not resolve location {request.location_label!r}")
        return coordinates

    async def _host_image(
        self,
        request: SuggestionRequest,
        compensations: CompensationStack,
    ) -> tuple[HostedImage | None, bytes | None]:
        if request.image is None:
            return None, None
        image_bytes = await self._temp_files.read_bytes(request.image)
        hosted = await self._image_host.upload(
            request.image.path, request.image.original_name, _IMAGE_FOLDER
        )
        compensations.push(f"delete_hosted_image:{hosted.id}", lambda: self._image_host.delete(hosted.id))
        return hosted, image_bytes

    async def _suggest_names(
        self,
        request: SuggestionRequest,
        weather: WeatherAverages,
        image_bytes: bytes | None,
    ) -> list[CropName]:
        prompt = prompts.crop_names_prompt(
            request, weather, count=self._suggestion_count, with_image=image_bytes is not None
        )
        if image_bytes is not None:
            raw = await self._generator.generate_text_from_image(prompt, image_bytes)
        else:
            raw = await self._generator.generate_text(prompt)
        names = parse_crop_names(raw, limit=self._suggestion_count)
        if request.avoid_current_crops and request.current_crops:
            avoided = {normalize_identity(c) for c in request.current_crops}
            names = [
                n for n in names
                if normalize_identity(n.name) not in avoided
                and normalize_identity(n.scientific_name) not in avoided
            ]
            if not names:
                raise MalformedOutputError(message="Every suggestion was a crop to avoid")
        return names

    async def _resolve_candidate(self, name: CropName) -> _Candidate:
        existing = await self._store.find_crop_by_scientific_name(name.scientific_name)
        if existing is not None:
            self._logger.debug("crop_exact_match", scientific_name=name.scientific_name, crop_id=existing.id)
            return _Candidate(name=name, existing=existing)

        embedding = await self._generator.generate_embedding(f"{name.name} ({name.scientific_name})")
        stored = await self._store.search_crops(f"{name.name} {name.scientific_name}")
        match = find_best_match(
            embedding,
            [(crop, crop.embedding) for crop in stored],
            threshold=self._similarity_threshold,
        )
        if match is not None:
            self._logger.info(
                "crop_semantic_match",
                scientific_name=name.scientific_name,
                crop_id=match.item.id,
                score=round(match.score, 4),
            )
            return _Candidate(name=name, existing=match.item)

        summary = await self._generate(
            "crop_summary",
            lambda: self._summarize(name),
        )
        image_url = None
        if self._stock_images is not None:
            image_url = await self._stock_images.find_image(name.name)
        return _Candidate(name=name, summary=summary, embedding=embedding, image_url=image_url)

    async def _summarize(self, name: CropName) -> CropSummary:
        raw = await self._generator.generate_text(
            prompts.crop_summary_prompt(name.name, name.scientific_name)
        )
        return parse_crop_summary(raw, name)

    async def _persist(
        self,
        request: SuggestionRequest,
        candidates: list[_Candidate],
        coordinates: Coordinates,
        weather: WeatherAverages,
        image: HostedImage | None,
    ) -> tuple[list[Crop], str]:
        crops: list[Crop] = []
        seen: set[str] = set()
        async with self._store.transaction() as tx:
            for candidate in candidates:
                crop = candidate.existing
                if crop is None:
                    crop, _ = await tx.get_or_create_crop(
                        candidate.summary,
                        embedding=candidate.embedding,
                        image_url=candidate.image_url,
                    )
                if crop.id in seen:
                    continue
                seen.add(crop.id)
                crops.append(crop)

            history = await tx.create_crop_suggestion_history(
                user_id=request.user_id,
                inputs=request.history_inputs(),
                crop_ids=[crop.id for crop in crops],
                coordinates=coordinates,
                weather=weather,
                image=image,
            )
        return crops, history.id

    # ------------------------------------------------------------------
    # Enrichment
    # ------------------------------------------------------------------

    async def _after_commit(self, request: SuggestionRequest, ctx: RunContext, result: RunResult) -> None:
        for crop in result.records:
            if crop.details.status == DetailStatus.SUCCESS:
                continue
            await self._enrich(ctx.user_id, crop)

    async def _enrich(self, user_id: str, crop: Crop) -> None:
        try:
            data = await self._generate("crop_details", lambda: self._detail_document(crop))
            await self._store.save_crop_details(crop.id, data)
        except Exception as exc:
            self._logger.warning(
                "crop_enrichment_failed",
                crop_id=crop.id,
                scientific_name=crop.scientific_name,
                error=str(exc),
            )
            try:
                await self._store.mark_crop_details_failed(crop.id)
            except Exception as mark_exc:
                self._logger.error("crop_details_status_update_failed", crop_id=crop.id, error=str(mark_exc))
            await self._channel.details_update(user_id, DetailStatus.FAILED, crop.scientific_name)
            return

        self._logger.info("crop_enriched", crop_id=crop.id, slug=crop.slug)
        await self._channel.details_update(
            user_id, DetailStatus.SUCCESS, crop.scientific_name, slug=crop.slug
        )

    async def _detail_document(self, crop: Crop) -> dict:
        raw = await self._generator.generate_text(prompts.crop_details_prompt(crop))
        return parse_json_payload(raw, expected_type=dict, label="crop details")
