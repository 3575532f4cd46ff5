"""Unit tests for the SQLite knowledge store."""

from __future__ import annotations

import pytest

from src.models.garden import GardenCropStatus, GuideStatus, PlantingStep
from src.models.history import GardenProfile, HostedImage
from src.models.knowledge import Crop, CropSummary, DetailStatus, DiseaseProfile
from src.models.weather import Coordinates
from src.providers.knowledge.sqlite_knowledge_store import SQLiteKnowledgeStore
from src.utils.errors import PersistenceError


def _summary(name: str, scientific_name: str, description: str = "") -> CropSummary:
    return CropSummary(name=name, scientific_name=scientific_name, description=description)


# ======================================================================
# Crops
# ======================================================================


class TestCrops:
    @pytest.mark.asyncio
    async def test_get_or_create_is_idempotent(
        self, store: SQLiteKnowledgeStore, tomato_summary: CropSummary
    ) -> None:
        async with store.transaction() as tx:
            first, created = await tx.get_or_create_crop(tomato_summary, embedding=[1.0, 0.0, 0.0])
        async with store.transaction() as tx:
            second, created_again = await tx.get_or_create_crop(tomato_summary)

        assert created is True
        assert created_again is False
        assert second.id == first.id
        assert second.embedding == [1.0, 0.0, 0.0]
        assert second.details.status == DetailStatus.PENDING

    @pytest.mark.asyncio
    async def test_identity_is_case_and_space_insensitive(self, store: SQLiteKnowledgeStore) -> None:
        async with store.transaction() as tx:
            crop, _ = await tx.get_or_create_crop(_summary("Tomato", "Solanum lycopersicum"))
            same, created = await tx.get_or_create_crop(_summary("Tomato", "  solanum   LYCOPERSICUM "))

        assert created is False
        assert same.id == crop.id
        found = await store.find_crop_by_scientific_name("SOLANUM lycopersicum")
        assert found is not None
        assert found.id == crop.id

    @pytest.mark.asyncio
    async def test_slug_collision_gets_suffix(self, store: SQLiteKnowledgeStore) -> None:
        async with store.transaction() as tx:
            first, _ = await tx.get_or_create_crop(_summary("Tomato", "Solanum lycopersicum"))
            second, _ = await tx.get_or_create_crop(_summary("Tomato", "Solanum pimpinellifolium"))

        assert first.slug == "tomato"
        assert second.slug == "tomato-1"
        assert (await store.get_crop_by_slug("tomato-1")).id == second.id

    @pytest.mark.asyncio
    async def test_failed_transaction_leaves_no_trace(
        self, store: SQLiteKnowledgeStore, tomato_summary: CropSummary
    ) -> None:
        with pytest.raises(RuntimeError):
            async with store.transaction() as tx:
                await tx.get_or_create_crop(tomato_summary)
                await tx.create_crop_suggestion_history("user-1", {"mode": "manual"}, ["x"])
                raise RuntimeError("weather lookup failed")

        assert await store.find_crop_by_scientific_name("Solanum lycopersicum") is None
        _, total = await store.list_crop_suggestion_history("user-1")
        assert total == 0

    @pytest.mark.asyncio
    async def test_finished_transaction_refuses_writes(
        self, store: SQLiteKnowledgeStore, tomato_summary: CropSummary
    ) -> None:
        async with store.transaction() as tx:
            pass
        with pytest.raises(PersistenceError):
            await tx.get_or_create_crop(tomato_summary)

    @pytest.mark.asyncio
    async def test_save_details_marks_success(
        self, store: SQLiteKnowledgeStore, tomato_summary: CropSummary
    ) -> None:
        async with store.transaction() as tx:
            crop, _ = await tx.get_or_create_crop(tomato_summary)

        details = await store.save_crop_details(crop.id, {"care": ["Stake plants"]})

        reloaded = await store.get_crop(crop.id)
        assert reloaded.details.status == DetailStatus.SUCCESS
        assert reloaded.details.details_id == details.id
        by_slug = await store.get_crop_details_by_slug(crop.slug)
        assert by_slug is not None
        assert by_slug.data == {"care": ["Stake plants"]}
        assert by_slug.scientific_name == "Solanum lycopersicum"

    @pytest.mark.asyncio
    async def test_details_saved_once(
        self, store: SQLiteKnowledgeStore, tomato_summary: CropSummary
    ) -> None:
        async with store.transaction() as tx:
            crop, _ = await tx.get_or_create_crop(tomato_summary)

        first = await store.save_crop_details(crop.id, {"v": 1})
        second = await store.save_crop_details(crop.id, {"v": 2})

        assert second.id == first.id
        assert second.data == {"v": 1}

    @pytest.mark.asyncio
    async def test_details_for_unknown_crop(self, store: SQLiteKnowledgeStore) -> None:
        with pytest.raises(PersistenceError, match="Unknown crop"):
            await store.save_crop_details("missing", {})

    @pytest.mark.asyncio
    async def test_mark_failed_never_overrides_success(
        self, store: SQLiteKnowledgeStore, tomato_summary: CropSummary
    ) -> None:
        async with store.transaction() as tx:
            tomato, _ = await tx.get_or_create_crop(tomato_summary)
            chili, _ = await tx.get_or_create_crop(_summary("Chili", "Capsicum annuum"))
        await store.save_crop_details(tomato.id, {"care": []})

        assert await store.mark_crop_details_failed(chili.id) is True
        assert await store.mark_crop_details_failed(tomato.id) is False
        assert (await store.get_crop(chili.id)).details.status == DetailStatus.FAILED
        assert (await store.get_crop(tomato.id)).details.status == DetailStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_search_ranks_by_matched_tokens(self, store: SQLiteKnowledgeStore) -> None:
        async with store.transaction() as tx:
            await tx.get_or_create_crop(_summary("Chili", "Capsicum annuum", "Hot red pods"))
            await tx.get_or_create_crop(_summary("Tomato", "Solanum lycopersicum", "Red vining fruit"))
            await tx.get_or_create_crop(_summary("Spinach", "Spinacia oleracea", "Leafy greens"))

        results = await store.search_crops("red vining fruit")

        assert [c.name for c in results] == ["Tomato", "Chili"]
        assert await store.search_crops("   ") == []


# ======================================================================
# Diseases
# ======================================================================


class TestDiseases:
    @pytest.mark.asyncio
    async def test_identity_is_disease_and_crop(
        self, store: SQLiteKnowledgeStore, blight_profile: DiseaseProfile
    ) -> None:
        potato_blight = blight_profile.model_copy(update={"crop_name": "Potato"})
        async with store.transaction() as tx:
            tomato, created = await tx.get_or_create_disease(blight_profile)
            again, created_again = await tx.get_or_create_disease(
                blight_profile.model_copy(update={"disease_name": "early BLIGHT"})
            )
            potato, created_potato = await tx.get_or_create_disease(potato_blight)

        assert created and not created_again and created_potato
        assert again.id == tomato.id
        assert potato.id != tomato.id
        found = await store.find_disease_by_identity("Early Blight", "tomato")
        assert found is not None
        assert found.symptoms == ["Brown rings"]

    @pytest.mark.asyncio
    async def test_search_diseases(
        self, store: SQLiteKnowledgeStore, blight_profile: DiseaseProfile
    ) -> None:
        async with store.transaction() as tx:
            await tx.get_or_create_disease(blight_profile)

        assert [d.disease_name for d in await store.search_diseases("copper")] == ["Early Blight"]
        assert await store.search_diseases("mildew") == []


# ======================================================================
# Histories and garden profiles
# ======================================================================


class TestHistories:
    @pytest.mark.asyncio
    async def test_paging_newest_first(self, store: SQLiteKnowledgeStore) -> None:
        for n in range(3):
            async with store.transaction() as tx:
                await tx.create_crop_suggestion_history("user-1", {"n": n}, [])

        first_page, total = await store.list_crop_suggestion_history("user-1", page=1, limit=2)
        second_page, _ = await store.list_crop_suggestion_history("user-1", page=2, limit=2)

        assert total == 3
        assert [h.inputs["n"] for h in first_page] == [2, 1]
        assert [h.inputs["n"] for h in second_page] == [0]

    @pytest.mark.asyncio
    async def test_histories_scoped_to_user(self, store: SQLiteKnowledgeStore) -> None:
        async with store.transaction() as tx:
            history = await tx.create_crop_suggestion_history(
                "user-1",
                {"mode": "manual"},
                ["crop-1"],
                coordinates=Coordinates(latitude=23.81, longitude=90.41),
                image=HostedImage(id="img-1", url="https://images.test/img-1"),
            )

        assert await store.get_crop_suggestion_history("user-2", history.id) is None
        loaded = await store.get_crop_suggestion_history("user-1", history.id)
        assert loaded is not None
        assert loaded.crop_ids == ["crop-1"]
        assert loaded.coordinates.latitude == 23.81
        assert loaded.image.id == "img-1"
        assert (await store.list_crop_suggestion_history("user-2"))[1] == 0

    @pytest.mark.asyncio
    async def test_disease_history_references_disease(
        self, store: SQLiteKnowledgeStore, blight_profile: DiseaseProfile
    ) -> None:
        async with store.transaction() as tx:
            disease, _ = await tx.get_or_create_disease(blight_profile)
            history = await tx.create_disease_detection_history(
                "user-1", "Tomato", disease.id, description="spots"
            )

        loaded = await store.get_disease_detection_history("user-1", history.id)
        assert loaded.detected_disease.status == DetailStatus.SUCCESS
        assert loaded.detected_disease.id == disease.id
        items, total = await store.list_disease_detection_history("user-1")
        assert total == 1
        assert items[0].description == "spots"

    @pytest.mark.asyncio
    async def test_garden_profile_upsert(self, store: SQLiteKnowledgeStore) -> None:
        assert await store.get_garden_profile("user-1") is None

        await store.save_garden_profile(
            GardenProfile(user_id="user-1", plant_type="vegetable", garden_type="rooftop", gardener_type="beginner")
        )
        await store.save_garden_profile(
            GardenProfile(
                user_id="user-1",
                plant_type="herb",
                garden_type="balcony",
                gardener_type="expert",
                current_crops=["Basil"],
            )
        )

        profile = await store.get_garden_profile("user-1")
        assert profile.plant_type == "herb"
        assert profile.current_crops == ["Basil"]
        assert (await store.get_stats())["garden_profiles"] == 1


class TestGardenCrops:
    STEPS = [
        PlantingStep(title="Soil Preparation", instructions=["Dig 30 cm deep"], note="Test the pH"),
        PlantingStep(title="Transplanting", description="Move seedlings outdoors."),
    ]

    @pytest.mark.asyncio
    async def test_create_links_crop_and_guide(self, store: SQLiteKnowledgeStore, stored_tomato: Crop) -> None:
        async with store.transaction() as tx:
            garden_crop, guide = await tx.create_garden_crop("user-1", stored_tomato, self.STEPS)

        assert garden_crop.planting_guide_id == guide.id
        assert garden_crop.status == GardenCropStatus.PENDING
        assert garden_crop.scientific_name == "Solanum lycopersicum"

        stored = await store.get_planting_guide("user-1", guide.id)
        assert stored.crop_id == stored_tomato.id
        assert stored.steps == self.STEPS
        assert stored.status == GuideStatus.IN_PROGRESS
        assert stored.current_step == 0

    @pytest.mark.asyncio
    async def test_list_newest_first_and_per_user(self, store: SQLiteKnowledgeStore, stored_tomato: Crop) -> None:
        async with store.transaction() as tx:
            chili, _ = await tx.get_or_create_crop(_summary("Chili", "Capsicum annuum"))
        async with store.transaction() as tx:
            first, guide = await tx.create_garden_crop("user-1", stored_tomato, self.STEPS)
        async with store.transaction() as tx:
            second, _ = await tx.create_garden_crop("user-1", chili, self.STEPS)

        listed = await store.list_garden_crops("user-1")

        assert [c.id for c in listed] == [second.id, first.id]
        assert await store.list_garden_crops("user-2") == []
        assert await store.get_planting_guide("user-2", guide.id) is None
        assert await store.get_planting_guide("user-1", "missing") is None

    @pytest.mark.asyncio
    async def test_failed_transaction_writes_nothing(self, store: SQLiteKnowledgeStore, stored_tomato: Crop) -> None:
        with pytest.raises(RuntimeError):
            async with store.transaction() as tx:
                await tx.create_garden_crop("user-1", stored_tomato, self.STEPS)
                raise RuntimeError("later step failed")

        stats = await store.get_stats()
        assert stats["garden_crops"] == 0
        assert stats["planting_guides"] == 0


class TestStats:
    @pytest.mark.asyncio
    async def test_counts(
        self, store: SQLiteKnowledgeStore, tomato_summary: CropSummary, blight_profile: DiseaseProfile
    ) -> None:
        async with store.transaction() as tx:
            crop, _ = await tx.get_or_create_crop(tomato_summary)
            await tx.get_or_create_crop(_summary("Chili", "Capsicum annuum"))
            disease, _ = await tx.get_or_create_disease(blight_profile)
            await tx.create_disease_detection_history("user-1", "Tomato", disease.id)
        await store.save_crop_details(crop.id, {})

        stats = await store.get_stats()

        assert stats["crops"] == 2
        assert stats["crop_details"] == 1
        assert stats["diseases"] == 1
        assert stats["disease_detection_history"] == 1
        assert stats["crop_suggestion_history"] == 0
        assert stats["crops_success"] == 1
        assert stats["crops_pending"] == 1
