"""Adding a stored crop to a user's garden.

The HTTP layer checks that the crop exists and answers at once; the rest
runs in the background:

1. generate the planting guide, retried like any other generation call;
2. store the guide and the garden crop in one transaction;
3. emit ``gardenAddingStatus`` to the user's crop-suggestion room.

Unlike the generation pipelines there is no progress stream.  The user
gets exactly one status event, successful or not, and :meth:`GardenPlanner.run`
never raises.
"""

from __future__ import annotations

import structlog

from src.interfaces.knowledge_store import IKnowledgeStore
from src.models.garden import GardenCrop, PlantingStep
from src.models.knowledge import Crop
from src.models.requests import GardenCropRequest
from src.pipeline.notification_hub import PipelineChannel
from src.pipeline.task_queue import BackgroundTaskRunner
from src.services import prompts
from src.services.generation_adapter import GenerationAdapter
from src.utils.errors import MalformedOutputError
from src.utils.json_parsing import parse_json_payload
from src.utils.logging import get_logger
from src.utils.retry import retry_async


def parse_planting_guide(raw: str) -> list[PlantingStep]:
    """Parse the planting-guide answer into ordered steps.

    The model writes ``details`` and ``tips``; they are stored as
    ``instructions`` and ``note``.  Entries without a title are skipped.

    Raises
    ------
    MalformedOutputError
        If the answer is not a JSON array or yields no usable step.
    """
    items = parse_json_payload(raw, expected_type=list, label="planting guide")
    steps: list[PlantingStep] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        title = str(item.get("title") or "").strip()
        if not title:
            continue
        tips = str(item.get("tips") or item.get("note") or "").strip()
        try:
            steps.append(
                PlantingStep(
                    title=title,
                    description=str(item.get("description") or "").strip(),
                    instructions=item.get("details", item.get("instructions")),
                    note=tips or None,
                )
            )
        except ValueError:
            continue
    if not steps:
        raise MalformedOutputError(message="Planting guide has no usable steps")
    return steps


class GardenPlanner:
    """Adds crops to gardens in the background.

    Parameters
    ----------
    store:
        Knowledge store the garden crop and guide are written to.
    generator:
        Text generation for the planting guide.
    channel:
        Crop-suggestion channel; status events go to its room.
    runner:
        Background executor used by :meth:`submit`.
    max_generation_attempts:
        Attempts for the guide generation, first one included.
    retry_base_delay:
        Delay in seconds before the second attempt.
    """

    def __init__(
        self,
        *,
        store: IKnowledgeStore,
        generator: GenerationAdapter,
        channel: PipelineChannel,
        runner: BackgroundTaskRunner,
        max_generation_attempts: int = 2,
        retry_base_delay: float = 0.5,
    ) -> None:
        self._store = store
        self._generator = generator
        self._channel = channel
        self._runner = runner
        self._max_attempts = max(1, max_generation_attempts)
        self._retry_base_delay = retry_base_delay
        self._logger: structlog.BoundLogger = get_logger(__name__)

    def submit(self, request: GardenCropRequest) -> str:
        """Start adding the crop and return the acknowledgement for the caller."""
        self._runner.submit(self.run(request), name=f"garden:{request.user_id}:{request.crop.id}")
        return (
            f'Crop "{request.crop.name}" is being added to your garden. '
            "Planting guide will be generated soon."
        )

    async def run(self, request: GardenCropRequest) -> GardenCrop | None:
        """Generate the guide, store it, and report the outcome to the user."""
        crop = request.crop
        with structlog.contextvars.bound_contextvars(user_id=request.user_id, crop_id=crop.id):
            self._logger.info("garden_add_started", crop_name=crop.name)
            try:
                steps = await retry_async(
                    lambda: self._planting_steps(crop),
                    max_attempts=self._max_attempts,
                    base_delay=self._retry_base_delay,
                    label="planting_guide",
                )
                async with self._store.transaction() as tx:
                    garden_crop, guide = await tx.create_garden_crop(request.user_id, crop, steps)
            except Exception as exc:
                self._logger.error(
                    "garden_add_failed",
                    error=str(exc),
                    error_type=type(exc).__name__,
                    exc_info=True,
                )
                await self._channel.garden_status(
                    request.user_id, False, f"{crop.name} failed to add.", crop.id
                )
                return None

            self._logger.info("garden_add_completed", garden_crop_id=garden_crop.id, guide_id=guide.id)
            await self._channel.garden_status(
                request.user_id, True, f"{crop.name} successfully added.", crop.id
            )
            return garden_crop

    async def _planting_steps(self, crop: Crop) -> list[PlantingStep]:
        raw = await self._generator.generate_text(prompts.planting_guide_prompt(crop))
        return parse_planting_guide(raw)
