"""Abstract base classes for the knowledge store.

The knowledge store keeps everything the pipelines learn: crops and their
enrichment documents, diseases, per-run histories, garden profiles and the
crops users have planted with their planting guides.

Two contracts are defined:

- :class:`IKnowledgeStore` -- reads, relevance search, enrichment updates,
  and the :meth:`~IKnowledgeStore.transaction` factory.
- :class:`IKnowledgeTransaction` -- the writes a pipeline's ``savingToDB``
  stage performs.  All of them become visible together on commit, or none
  of them do.  A transaction is owned by exactly one run.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Any

from src.models.garden import GardenCrop, PlantingGuide, PlantingStep
from src.models.history import (
    CropSuggestionHistory,
    DiseaseDetectionHistory,
    GardenProfile,
    HostedImage,
)
from src.models.knowledge import Crop, CropDetails, CropSummary, Disease, DiseaseProfile
from src.models.weather import Coordinates, WeatherAverages


class IKnowledgeTransaction(ABC):
    """Writes performed inside one atomic unit of work."""

    @abstractmethod
    async def get_or_create_crop(
        self,
        summary: CropSummary,
        embedding: list[float] | None = None,
        image_url: str | None = None,
    ) -> tuple[Crop, bool]:
        """Return the crop with *summary*'s scientific name, creating it if absent.

        Identity is the case-insensitive scientific name.  New crops get a
        unique slug derived from the name and detail status ``pending``.

        Returns
        -------
        tuple[Crop, bool]
            The crop and ``True`` when it was created by this call.
        """

    @abstractmethod
    async def get_or_create_disease(
        self,
        profile: DiseaseProfile,
        embedding: list[float] | None = None,
    ) -> tuple[Disease, bool]:
        """Return the disease with *profile*'s identity, creating it if absent.

        Identity is the case-insensitive (disease name, crop name) pair.
        """

    @abstractmethod
    async def create_crop_suggestion_history(
        self,
        user_id: str,
        inputs: dict[str, Any],
        crop_ids: list[str],
        coordinates: Coordinates | None = None,
        weather: WeatherAverages | None = None,
        image: HostedImage | None = None,
    ) -> CropSuggestionHistory:
        """Append a crop suggestion history entry."""

    @abstractmethod
    async def create_disease_detection_history(
        self,
        user_id: str,
        crop_name: str,
        disease_id: str,
        description: str | None = None,
        image: HostedImage | None = None,
    ) -> DiseaseDetectionHistory:
        """Append a disease detection history entry with status ``success``."""

    @abstractmethod
    async def create_garden_crop(
        self,
        user_id: str,
        crop: Crop,
        steps: list[PlantingStep],
    ) -> tuple[GardenCrop, PlantingGuide]:
        """Add *crop* to the user's garden together with its planting guide."""


class IKnowledgeStore(ABC):
    """Contract for knowledge persistence and search."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create the schema if it does not exist yet."""

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[IKnowledgeTransaction]:
        """Open an exclusive unit of work.

        Usage::

            async with store.transaction() as tx:
                crop, created = await tx.get_or_create_crop(summary)
                await tx.create_crop_suggestion_history(...)

        Commits when the block exits normally; rolls back every write made
        through ``tx`` when it raises, then re-raises.

        Raises
        ------
        src.utils.errors.PersistenceError
            If the database fails (constraint violations included).
        """

    # -- Crops -----------------------------------------------------------

    @abstractmethod
    async def find_crop_by_scientific_name(self, scientific_name: str) -> Crop | None:
        """Case-insensitive exact lookup by scientific name."""

    @abstractmethod
    async def get_crop(self, crop_id: str) -> Crop | None:
        """Return the crop with *crop_id*."""

    @abstractmethod
    async def get_crop_by_slug(self, slug: str) -> Crop | None:
        """Return the crop with *slug*."""

    @abstractmethod
    async def search_crops(self, query: str, limit: int = 50) -> list[Crop]:
        """Token relevance search over crop text fields, best first."""

    @abstractmethod
    async def save_crop_details(self, crop_id: str, data: dict[str, Any]) -> CropDetails:
        """Store the enrichment document and mark the crop ``success``.

        If the crop already has details, the existing document is returned
        unchanged.
        """

    @abstractmethod
    async def mark_crop_details_failed(self, crop_id: str) -> bool:
        """Mark enrichment as ``failed`` unless it already succeeded.

        Returns ``True`` when the status changed.
        """

    @abstractmethod
    async def get_crop_details_by_slug(self, slug: str) -> CropDetails | None:
        """Return the enrichment document of the crop with *slug*."""

    # -- Diseases --------------------------------------------------------

    @abstractmethod
    async def find_disease_by_identity(self, disease_name: str, crop_name: str) -> Disease | None:
        """Case-insensitive exact lookup by (disease name, crop name)."""

    @abstractmethod
    async def get_disease(self, disease_id: str) -> Disease | None:
        """Return the disease with *disease_id*."""

    @abstractmethod
    async def search_diseases(self, query: str, limit: int = 50) -> list[Disease]:
        """Token relevance search over disease text fields, best first."""

    # -- Histories -------------------------------------------------------

    @abstractmethod
    async def list_crop_suggestion_history(
        self, user_id: str, page: int = 1, limit: int = 10
    ) -> tuple[list[CropSuggestionHistory], int]:
        """Return one page of the user's suggestion history (newest first) and the total."""

    @abstractmethod
    async def get_crop_suggestion_history(
        self, user_id: str, history_id: str
    ) -> CropSuggestionHistory | None:
        """Return one of the user's suggestion history entries."""

    @abstractmethod
    async def list_disease_detection_history(
        self, user_id: str, page: int = 1, limit: int = 10
    ) -> tuple[list[DiseaseDetectionHistory], int]:
        """Return one page of the user's detection history (newest first) and the total."""

    @abstractmethod
    async def get_disease_detection_history(
        self, user_id: str, history_id: str
    ) -> DiseaseDetectionHistory | None:
        """Return one of the user's detection history entries."""

    # -- Garden profiles -------------------------------------------------

    @abstractmethod
    async def save_garden_profile(self, profile: GardenProfile) -> GardenProfile:
        """Insert or replace the user's garden profile."""

    @abstractmethod
    async def get_garden_profile(self, user_id: str) -> GardenProfile | None:
        """Return the user's garden profile, if any."""

    # -- Garden crops ----------------------------------------------------

    @abstractmethod
    async def list_garden_crops(self, user_id: str, include_removed: bool = False) -> list[GardenCrop]:
        """Return the user's garden crops, newest first.

        Crops with status ``removed`` are left out unless *include_removed*.
        """

    @abstractmethod
    async def get_planting_guide(self, user_id: str, guide_id: str) -> PlantingGuide | None:
        """Return one of the user's planting guides."""
