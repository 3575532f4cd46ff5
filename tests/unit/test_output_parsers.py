"""Unit tests for model-output parsing in the pipelines."""

from __future__ import annotations

import pytest

from src.models.knowledge import CropName, Difficulty, SoilType
from src.pipeline.crop_suggestion import parse_crop_names, parse_crop_summary
from src.pipeline.disease_detection import parse_disease_name, parse_disease_profile
from src.pipeline.garden import parse_planting_guide
from src.utils.errors import DetectionRejectedError, MalformedOutputError
from tests.conftest import LEAF_BLIGHT_PROFILE, TOMATO_GUIDE, TOMATO_SUMMARY


class TestParseCropNames:
    def test_parses_pairs(self) -> None:
        raw = (
            '```json\n[{"name": "Tomato", "scientificName": "Solanum lycopersicum"},'
            ' {"name": "Chili", "scientificName": "Capsicum annuum"}]\n```'
        )
        names = parse_crop_names(raw)
        assert [n.scientific_name for n in names] == ["Solanum lycopersicum", "Capsicum annuum"]

    def test_duplicates_keep_first(self) -> None:
        raw = (
            '[{"name": "Tomato", "scientificName": "Solanum lycopersicum"},'
            ' {"name": "Cherry Tomato", "scientificName": "solanum  LYCOPERSICUM"}]'
        )
        names = parse_crop_names(raw)
        assert names == [CropName(name="Tomato", scientific_name="Solanum lycopersicum")]

    def test_incomplete_entries_skipped(self) -> None:
        raw = (
            '[{"name": "Tomato"}, "Okra", {"name": "", "scientificName": "Allium cepa"},'
            ' {"name": "Chili", "scientific_name": "Capsicum annuum"}]'
        )
        assert [n.name for n in parse_crop_names(raw)] == ["Chili"]

    def test_limit(self) -> None:
        raw = (
            '[{"name": "Tomato", "scientificName": "Solanum lycopersicum"},'
            ' {"name": "Chili", "scientificName": "Capsicum annuum"},'
            ' {"name": "Okra", "scientificName": "Abelmoschus esculentus"}]'
        )
        assert len(parse_crop_names(raw, limit=2)) == 2

    @pytest.mark.parametrize("raw", ['{"name": "Tomato"}', "[]", '[{"name": "Tomato"}]', "not json"])
    def test_unusable_answers(self, raw: str) -> None:
        with pytest.raises(MalformedOutputError):
            parse_crop_names(raw)


class TestParseCropSummary:
    def test_names_pinned_to_candidate(self) -> None:
        expected = CropName(name="Cherry Tomato", scientific_name="Solanum lycopersicum var. cerasiforme")
        summary = parse_crop_summary(TOMATO_SUMMARY, expected)

        assert summary.name == "Cherry Tomato"
        assert summary.scientific_name == "Solanum lycopersicum var. cerasiforme"
        assert summary.difficulty == Difficulty.EASY
        assert summary.soil_type == SoilType.LOAMY
        assert summary.maturity_time == "70 days"

    def test_invalid_enum_is_malformed(self) -> None:
        expected = CropName(name="Tomato", scientific_name="Solanum lycopersicum")
        with pytest.raises(MalformedOutputError, match="validation"):
            parse_crop_summary('{"soilType": "lava"}', expected)


class TestParseDiseaseName:
    @pytest.mark.parametrize("raw", ['"Early Blight"', "Early Blight.", "```\nEarly Blight\n```"])
    def test_plain_name(self, raw: str) -> None:
        assert parse_disease_name(raw) == "Early Blight"

    @pytest.mark.parametrize("raw", ["NO_DISEASE_DETECTED", "no disease detected.", "NO_DISEASE_DETECTED\n"])
    def test_no_disease_sentinel(self, raw: str) -> None:
        with pytest.raises(DetectionRejectedError) as excinfo:
            parse_disease_name(raw)
        assert excinfo.value.user_message == "No disease was detected in the image."

    def test_invalid_image_sentinel(self) -> None:
        with pytest.raises(DetectionRejectedError) as excinfo:
            parse_disease_name("ERROR_INVALID_IMAGE")
        assert "clear photo" in excinfo.value.user_message

    @pytest.mark.parametrize("raw", ["", "Early Blight\nor Late Blight", "x" * 200])
    def test_not_a_name(self, raw: str) -> None:
        with pytest.raises(MalformedOutputError):
            parse_disease_name(raw)


class TestParseDiseaseProfile:
    def test_identity_pinned_to_detection(self) -> None:
        profile = parse_disease_profile(LEAF_BLIGHT_PROFILE, "Target Spot", "Tomato")
        assert profile.disease_name == "Target Spot"
        assert profile.crop_name == "Tomato"
        assert profile.treatment == ["Copper spray"]

    def test_string_lists_are_coerced(self) -> None:
        profile = parse_disease_profile('{"symptoms": "Wilting", "causes": null}', "Wilt", "Tomato")
        assert profile.symptoms == ["Wilting"]
        assert profile.causes == []

    def test_array_answer_is_malformed(self) -> None:
        with pytest.raises(MalformedOutputError):
            parse_disease_profile("[]", "Wilt", "Tomato")


class TestParsePlantingGuide:
    def test_maps_details_and_tips(self) -> None:
        soil, transplant = parse_planting_guide(TOMATO_GUIDE)
        assert soil.title == "Soil Preparation"
        assert soil.instructions == ["Dig 30 cm deep", "Mix in compost"]
        assert soil.note == "Test the soil pH first"
        assert transplant.instructions == ["Plant at dusk"]
        assert transplant.note is None

    def test_entries_without_title_are_skipped(self) -> None:
        raw = '[{"description": "untitled"}, "loose text", {"title": "  Watering  ", "details": null}]'
        [step] = parse_planting_guide(raw)
        assert step.title == "Watering"
        assert step.instructions == []

    @pytest.mark.parametrize("raw", ["[]", '[{"title": ""}]', '{"title": "Soil"}'])
    def test_no_usable_step(self, raw: str) -> None:
        with pytest.raises(MalformedOutputError):
            parse_planting_guide(raw)
