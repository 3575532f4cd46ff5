"""Prompt templates for crop suggestion, disease detection and garden planting.

Every prompt asks for bare JSON (or a bare keyword) so the answer can be
fed straight to :func:`src.utils.json_parsing.parse_json_payload`.  Literal
braces in the templates are doubled for ``str.format``.
"""

from __future__ import annotations

from src.models.knowledge import Crop
from src.models.requests import SuggestionRequest
from src.models.weather import WeatherAverages

NO_DISEASE_DETECTED = "NO_DISEASE_DETECTED"
ERROR_INVALID_IMAGE = "ERROR_INVALID_IMAGE"

SYSTEM_PROMPT = (
    "You are an agronomy assistant. Answer with the requested JSON or keyword only, "
    "without explanations or markdown."
)

# ---------------------------------------------------------------------------
# Crop suggestion
# ---------------------------------------------------------------------------

_CROP_NAMES_PROMPT = """\
You are an expert agronomist.

Suggest {count} plants suitable for the garden described below.{image_hint}

Garden details:
{garden_lines}

Weather averages of the area over the coming days:
- Avg max temperature: {weather.avg_max_temp} C
- Avg min temperature: {weather.avg_min_temp} C
- Avg humidity: {weather.avg_humidity} %
- Avg rainfall: {weather.avg_rainfall} mm
- Avg wind speed: {weather.avg_wind_speed} km/h
- Dominant wind direction: {weather.dominant_wind_direction} degrees

Instructions:
- First consider crops that grow well in this location and weather.
- Then refine by plant type, garden conditions, gardener experience and purpose.
- {current_crops_rule}

Return only a JSON array of {count} objects:
[
  {{"name": "Tomato", "scientificName": "Solanum lycopersicum"}}
]
"""

_CROP_SUMMARY_PROMPT = """\
You are a crop research assistant. Using trusted agronomic sources, describe this crop:

- name: {name}
- scientificName: {scientific_name}

Return a JSON object with:
- name
- scientificName
- difficulty: "very easy" | "easy" | "medium" | "hard"
- features: 2 to 5 short points
- description: a 2 to 4 line paragraph
- maturityTime: e.g. "60-80 days"
- plantingSeason: e.g. "Spring"
- sunlight: e.g. "full sun", "partial shade"
- waterNeed: "low" | "moderate" | "high"
- soilType: "loamy" | "sandy" | "clayey" | "silty" | "peaty" | "chalky"

Example:
{{
  "name": "Tomato",
  "scientificName": "Solanum lycopersicum",
  "difficulty": "easy",
  "features": ["high yield", "disease resistant"],
  "description": "Tomato is a popular crop grown for its edible fruit.",
  "maturityTime": "60-80 days",
  "plantingSeason": "Spring and Summer",
  "sunlight": "full sun",
  "waterNeed": "moderate",
  "soilType": "loamy"
}}
"""

_CROP_DETAILS_PROMPT = """\
You are an agriculture expert. Using research-backed facts, generate complete
information for the crop below. Keep explanations short and specific, and omit
any field without reliable data. Give costs in {currency}.

Crop name: {name}
Scientific name: {scientific_name}

Return only a JSON object with this structure:
{{
  "name": "{name}",
  "scientificName": "{scientific_name}",
  "type": "",
  "variety": "",
  "description": "",
  "tags": [],
  "difficultyLevel": "",
  "isPerennial": false,
  "cropCycle": "",
  "gardenTypeSuitability": {{
    "rooftop": {{"suitable": true, "notes": ""}},
    "balcony": {{"suitable": true, "notes": ""}},
    "land": {{"suitable": true, "notes": ""}}
  }},
  "growthConditions": {{
    "plantingSeason": "",
    "plantingTime": "",
    "climate": "",
    "temperatureRange": {{"min": "", "max": ""}},
    "humidityRequirement": "",
    "sunlight": "",
    "soil": {{"type": "", "pH": "", "drainage": ""}},
    "spacingRequirements": "",
    "containerGardening": {{"canGrowInPots": true, "potSize": "", "potDepth": "", "drainage": ""}}
  }},
  "careRequirements": {{
    "water": {{"requirement": "", "frequency": "", "waterConservationTips": []}},
    "fertilizer": {{"type": "", "schedule": ""}},
    "pruning": "",
    "support": "",
    "spaceOptimizationTips": [],
    "toolsRequired": []
  }},
  "growthAndHarvest": {{
    "propagationMethods": [],
    "germinationTime": "",
    "maturityTime": "",
    "harvestTime": "",
    "yieldPerPlant": "",
    "harvestingTips": [],
    "pollinationType": "",
    "seasonalAdjustments": {{"rooftop": "", "balcony": "", "land": ""}}
  }},
  "pestAndDiseaseManagement": {{
    "commonDiseases": [{{"name": "", "symptoms": "", "treatment": ""}}],
    "commonPests": [{{"name": "", "symptoms": "", "treatment": ""}}]
  }},
  "companionPlanting": {{
    "companionPlants": [{{"name": "", "benefit": ""}}],
    "avoidNear": [],
    "notes": ""
  }},
  "nutritionalAndCulinary": {{
    "nutritionalValue": "",
    "healthBenefits": "",
    "culinaryUses": "",
    "storageTips": ""
  }},
  "economicAspects": {{
    "marketDemand": "",
    "seedSourcing": [{{"source": "", "details": ""}}],
    "costBreakdown": [{{"item": "", "cost": 0, "unit": "", "note": ""}}]
  }},
  "sustainabilityTips": [],
  "aestheticValue": {{"description": "", "tips": ""}},
  "regionalSuitability": {{"suitableRegions": [], "urbanGardeningNotes": ""}},
  "funFacts": []
}}
"""

# ---------------------------------------------------------------------------
# Disease detection
# ---------------------------------------------------------------------------

_DISEASE_NAME_PROMPT = """\
You are an expert crop disease detector.

Analyze the image of a {crop_name}.{context}

Respond with:
- Only the disease name if a disease is detected.
- {no_disease} if no disease is found.
- {invalid_image} if the image is unclear, irrelevant, or does not show a crop.

Do not include any explanation or extra words.
"""

_DISEASE_PROFILE_PROMPT = """\
Act as an expert agricultural disease analyst. Using research-backed data,
describe the following disease.

Crop: {crop_name}
Disease: {disease_name}{note}

Return only this JSON object:
{{
  "cropName": "<crop name>",
  "diseaseName": "<disease name>",
  "description": "<short overview>",
  "symptoms": ["<symptom>"],
  "treatment": ["<treatment>"],
  "causes": ["<cause>"],
  "preventiveTips": ["<tip>"]
}}
"""

# ---------------------------------------------------------------------------
# Garden planting
# ---------------------------------------------------------------------------

_PLANTING_GUIDE_PROMPT = """\
You are a professional horticulture and agriculture research assistant.
Using reliable sources (botanical references, agricultural guidelines, trusted
farming practice), write a planting guide for the crop below.

Crop:
- Name: {name}
- Scientific name: {scientific_name}{description}

Rules:
- Each object is one sequential phase of the initial planting process only
  (for example soil preparation, sowing or transplanting, first watering),
  not ongoing cultivation.
- "details" lists the ordered instructions for that phase.
- "tips" is one short hint for that phase and may be omitted.
- Keep descriptions concise and actionable; do not invent irrelevant details.

Return only this JSON array:
[
  {{"title": "", "description": "", "details": [""], "tips": ""}}
]
"""


def crop_names_prompt(
    request: SuggestionRequest,
    weather: WeatherAverages,
    count: int = 16,
    with_image: bool = False,
) -> str:
    """Build the prompt asking for *count* ``{name, scientificName}`` pairs."""
    garden = [
        f"- Plant type: {request.plant_type}",
        f"- Gardener type: {request.gardener_type}",
        f"- Garden type: {request.garden_type}",
        f"- Location: {request.location_label}",
    ]
    optional = [
        ("Area", f"{request.area:g} sq.ft" if request.area else None),
        ("Soil type", request.soil_type),
        ("Sunlight", request.sunlight),
        ("Water source", request.water_source),
        ("Purpose", request.purpose),
        ("Current crops", ", ".join(request.current_crops) or None),
    ]
    garden.extend(f"- {label}: {value}" for label, value in optional if value)

    if request.avoid_current_crops and request.current_crops:
        rule = "Do NOT include any of the current crops."
    else:
        rule = "You may include current crops if they match the criteria."

    return _CROP_NAMES_PROMPT.format(
        count=count,
        image_hint=" A photo of the garden is attached; use it for context." if with_image else "",
        garden_lines="\n".join(garden),
        weather=weather,
        current_crops_rule=rule,
    )


def crop_summary_prompt(name: str, scientific_name: str) -> str:
    return _CROP_SUMMARY_PROMPT.format(name=name, scientific_name=scientific_name)


def crop_details_prompt(crop: Crop, currency: str = "BDT") -> str:
    return _CROP_DETAILS_PROMPT.format(
        name=crop.name,
        scientific_name=crop.scientific_name,
        currency=currency,
    )


def disease_name_prompt(crop_name: str, description: str | None = None) -> str:
    return _DISEASE_NAME_PROMPT.format(
        crop_name=crop_name,
        context=f" Context: {description}" if description else "",
        no_disease=NO_DISEASE_DETECTED,
        invalid_image=ERROR_INVALID_IMAGE,
    )


def disease_profile_prompt(disease_name: str, crop_name: str, description: str | None = None) -> str:
    return _DISEASE_PROFILE_PROMPT.format(
        crop_name=crop_name,
        disease_name=disease_name,
        note=f"\nNote: {description}" if description else "",
    )


def planting_guide_prompt(crop: Crop) -> str:
    return _PLANTING_GUIDE_PROMPT.format(
        name=crop.name,
        scientific_name=crop.scientific_name,
        description=f"\n- Description: {crop.description}" if crop.description else "",
    )
