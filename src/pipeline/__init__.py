"""Generation pipelines and their run infrastructure."""

from src.pipeline.base import GenerationPipeline, RunContext, RunResult
from src.pipeline.compensation import CompensationStack
from src.pipeline.crop_suggestion import CropSuggestionPipeline
from src.pipeline.disease_detection import DiseaseDetectionPipeline
from src.pipeline.garden import GardenPlanner
from src.pipeline.notification_hub import NotificationHub, PipelineChannel, room_name
from src.pipeline.progress_tracker import ProgressTracker
from src.pipeline.task_queue import BackgroundTaskRunner

__all__ = [
    "BackgroundTaskRunner",
    "CompensationStack",
    "CropSuggestionPipeline",
    "DiseaseDetectionPipeline",
    "GardenPlanner",
    "GenerationPipeline",
    "NotificationHub",
    "PipelineChannel",
    "ProgressTracker",
    "RunContext",
    "RunResult",
    "room_name",
]
