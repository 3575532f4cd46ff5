"""Disease detection pipeline.

Identifies the disease on an uploaded crop photo and links the user's
history to a stored disease record, generating that record only when no
known disease matches.

Stages:

1. ``analyzing`` -- vision prompt returns the disease name or a refusal
   sentinel; exact lookup by (disease name, crop name).
2. ``generatingData`` -- on a miss, embedding similarity against search
   candidates, then generation of the full disease record.
3. ``savingToDB`` -- host the photo, then one transaction creating the
   disease (if new) and the history entry.
4. ``completed`` -- result event with the history and disease ids.
"""

from __future__ import annotations

from src.interfaces.image_host import IImageHost
from src.interfaces.knowledge_store import IKnowledgeStore
from src.models.knowledge import Disease, DiseaseProfile
from src.models.pipeline import PipelineKind, RunStatus
from src.models.requests import DetectionRequest
from src.pipeline.base import GenerationPipeline, RunContext, RunResult
from src.pipeline.compensation import CompensationStack
from src.services import prompts
from src.services.generation_adapter import GenerationAdapter
from src.utils.errors import DetectionRejectedError, MalformedOutputError
from src.utils.json_parsing import parse_json_payload, strip_code_fences
from src.utils.similarity import find_best_match

_IMAGE_FOLDER = "disease-detection"
_MAX_NAME_LENGTH = 120

_REJECTIONS = {
    prompts.NO_DISEASE_DETECTED: "No disease was detected in the image.",
    prompts.ERROR_INVALID_IMAGE: (
        "The image is unclear or does not show a crop. Please upload a clear photo of the plant."
    ),
}


def parse_disease_name(raw: str) -> str:
    """Return the detected disease name from the vision answer.

    Raises
    ------
    DetectionRejectedError
        If the answer is one of the refusal sentinels.
    MalformedOutputError
        If the answer is empty or does not look like a name.
    """
    text = strip_code_fences(raw).strip().strip("\"'`.").strip()
    sentinel = text.upper().replace(" ", "_")
    for keyword, user_message in _REJECTIONS.items():
        if sentinel == keyword or sentinel.startswith(keyword):
            raise DetectionRejectedError(
                message=f"Detector answered {keyword}",
                user_message=user_message,
            )
    if not text or "\n" in text or len(text) > _MAX_NAME_LENGTH:
        raise MalformedOutputError(message="Disease name answer is not a single short name")
    return text


def parse_disease_profile(raw: str, disease_name: str, crop_name: str) -> DiseaseProfile:
    """Parse the disease record; identity fields are pinned to the detection."""
    data = parse_json_payload(raw, expected_type=dict, label="disease profile")
    data["diseaseName"] = disease_name
    data["cropName"] = crop_name
    try:
        return DiseaseProfile.model_validate(data)
    except ValueError as exc:
        raise MalformedOutputError(message=f"Disease profile failed validation: {exc}") from exc


class DiseaseDetectionPipeline(GenerationPipeline[DetectionRequest]):
    """Detects a crop disease from a photo and records the detection."""

    kind = PipelineKind.DISEASE_DETECTION
    failure_message = "Failed to detect disease. Please try again."

    def __init__(
        self,
        *,
        store: IKnowledgeStore,
        generator: GenerationAdapter,
        image_host: IImageHost,
        similarity_threshold: float | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self._store = store
        self._generator = generator
        self._image_host = image_host
        self._similarity_threshold = similarity_threshold

    async def _execute(
        self,
        request: DetectionRequest,
        ctx: RunContext,
        compensations: CompensationStack,
    ) -> RunResult:
        await ctx.advance(RunStatus.ANALYZING, 10, "Analyzing image")
        image_bytes = await self._temp_files.read_bytes(request.image)
        disease_name = await self._generate(
            "disease_name",
            lambda: self._detect_name(request, image_bytes),
        )
        await ctx.advance(RunStatus.ANALYZING, 30, f"Detected {disease_name}")

        disease = await self._store.find_disease_by_identity(disease_name, request.crop_name)
        profile: DiseaseProfile | None = None
        embedding: list[float] | None = None

        await ctx.advance(RunStatus.GENERATING_DATA, 40, "Looking up disease information")
        if disease is None:
            embedding = await self._generator.generate_embedding(disease_name)
            disease = await self._closest_known(disease_name, embedding)
            await ctx.advance(RunStatus.GENERATING_DATA, 55, "Compared with known diseases")
        if disease is None:
            profile = await self._generate(
                "disease_profile",
                lambda: self._describe(disease_name, request),
            )
        await ctx.advance(RunStatus.GENERATING_DATA, 70, "Disease information ready")

        await ctx.advance(RunStatus.SAVING_TO_DB, 80, "Saving detection result")
        hosted = await self._image_host.upload(
            request.image.path, request.image.original_name, _IMAGE_FOLDER
        )
        compensations.push(f"delete_hosted_image:{hosted.id}", lambda: self._image_host.delete(hosted.id))

        async with self._store.transaction() as tx:
            if disease is None:
                disease, _ = await tx.get_or_create_disease(profile, embedding=embedding)
            history = await tx.create_disease_detection_history(
                user_id=request.user_id,
                crop_name=request.crop_name,
                disease_id=disease.id,
                description=request.description,
                image=hosted,
            )

        self._logger.info(
            "disease_detection_ready",
            history_id=history.id,
            disease_id=disease.id,
            generated=profile is not None,
        )
        return RunResult(
            payload={
                "resultId": history.id,
                "diseaseId": disease.id,
                "diseaseName": disease.disease_name,
                "cropName": request.crop_name,
            },
            records=[disease],
        )

    async def _detect_name(self, request: DetectionRequest, image_bytes: bytes) -> str:
        raw = await self._generator.generate_text_from_image(
            prompts.disease_name_prompt(request.crop_name, request.description),
            image_bytes,
        )
        return parse_disease_name(raw)

    async def _closest_known(self, disease_name: str, embedding: list[float]) -> Disease | None:
        stored = await self._store.search_diseases(disease_name)
        match = find_best_match(
            embedding,
            [(d, d.embedding) for d in stored],
            threshold=self._similarity_threshold,
        )
        if match is None:
            return None
        self._logger.info(
            "disease_semantic_match",
            disease_name=disease_name,
            disease_id=match.item.id,
            score=round(match.score, 4),
        )
        return match.item

    async def _describe(self, disease_name: str, request: DetectionRequest) -> DiseaseProfile:
        raw = await self._generator.generate_text(
            prompts.disease_profile_prompt(disease_name, request.crop_name, request.description)
        )
        return parse_disease_profile(raw, disease_name, request.crop_name)
