import logging
from dataclasses import dataclass
from pathlib import Path

from ..config import ModelSettings
from ..exceptions import ResourceNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class ModelResources:
    """Resolved locations of the detector and recognizer model files.

    Attributes:
        model_dir: Directory holding both model files.
        runtime: Runtime identifier (e.g., "onnx").
        detection_file: Detector file name inside ``model_dir``.
        recognition_file: Recognizer file name inside ``model_dir``.

    Note:
        This class is typically created by ResourceLoader.load_model_resource()
        and should not be instantiated directly in most cases.
    """

    model_dir: Path
    runtime: str
    detection_file: str
    recognition_file: str

    def get_model_file(self, filename: str) -> Path:
        """Get the full path to a file within the model directory."""
        return self.model_dir / filename

    @property
    def detection_path(self) -> Path:
        return self.get_model_file(self.detection_file)

    @property
    def recognition_path(self) -> Path:
        return self.get_model_file(self.recognition_file)


class ResourceLoader:
    """Resolves and validates model files described by `ModelSettings`."""

    @staticmethod
    def load_model_resource(settings: ModelSettings) -> ModelResources:
        """Resolve model paths and verify that both files exist.

        Raises:
            ResourceNotFoundError: If the model directory or a model file is
                missing.
        """
        model_dir = Path(settings.model_dir).expanduser().resolve()
        logger.info(
            f"Loading resources from {model_dir} (runtime: {settings.runtime.value})"
        )

        if not model_dir.is_dir():
            raise ResourceNotFoundError(f"Model directory not found: {model_dir}")

        resources = ModelResources(
            model_dir=model_dir,
            runtime=settings.runtime.value,
            detection_file=settings.detection.filename,
            recognition_file=settings.recognition.filename,
        )

        for path in (resources.detection_path, resources.recognition_path):
            if not path.is_file():
                raise ResourceNotFoundError(f"Required model file missing: {path}")

        ResourceLoader._log_resource_summary(resources)
        return resources

    @staticmethod
    def _log_resource_summary(resources: ModelResources) -> None:
        logger.info(f"✅ Resources resolved in {resources.model_dir}")
        logger.info(f"   Runtime: {resources.runtime}")
        logger.info(f"   Detector: {resources.detection_file}")
        logger.info(f"   Recognizer: {resources.recognition_file}")
