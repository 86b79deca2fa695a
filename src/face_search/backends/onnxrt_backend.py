"""
ONNX Runtime backend for the SCRFD detector and ArcFace recognizer.

Both sessions are created once by `initialize()` and stored in an immutable
`ModelHandles` value. ONNX Runtime sessions are safe to `run()` from several
threads, so one backend instance serves every request.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import numpy as np
import numpy.typing as npt
from typing_extensions import override

from ..config import ModelSettings
from ..exceptions import InferenceError, ModelLoadingError
from ..resources.loader import ModelResources
from .base import BackendInfo, FaceModelBackend

# onnxruntime is an external dependency; we import lazily to surface a clear error
try:
    import onnxruntime as ort
except ImportError:  # pragma: no cover
    ort = None


logger = __import__("logging").getLogger(__name__)


class ONNXRTModelLoadingError(ModelLoadingError):
    """Raised when an ONNX model cannot be loaded."""


@dataclass(frozen=True)
class ModelHandles:
    """Loaded sessions plus the input names they are fed through."""

    detector: Any
    recognizer: Any
    detector_input: str
    recognizer_input: str


class ONNXRTBackend(FaceModelBackend):
    """Detector + recognizer pair powered by ONNX Runtime."""

    def __init__(
        self,
        resources: ModelResources,
        settings: ModelSettings | None = None,
        providers: list[str] | None = None,
        device_preference: str | None = None,
    ) -> None:
        if ort is None:
            raise ImportError(
                "onnxruntime is required for ONNXRTBackend. Install with `pip install onnxruntime`."
            )
        super().__init__()
        self.resources = resources
        self.settings = settings or ModelSettings()
        self._providers = providers or self._default_providers(device_preference)
        self._handles: ModelHandles | None = None
        self._load_time_seconds: float | None = None
        self._embedding_dim: int | None = None

    # ------------------------------------------------------------------ #
    # Provider utilities
    # ------------------------------------------------------------------ #

    def _default_providers(self, device_pref: str | None) -> list[str]:
        available = set(ort.get_available_providers())
        priority = [
            "CUDAExecutionProvider",
            "CoreMLExecutionProvider",
            "DmlExecutionProvider",
            "OpenVINOExecutionProvider",
            "CPUExecutionProvider",
        ]
        selected = [prov for prov in priority if prov in available]

        pref_map = {
            "cuda": "CUDAExecutionProvider",
            "coreml": "CoreMLExecutionProvider",
            "directml": "DmlExecutionProvider",
            "openvino": "OpenVINOExecutionProvider",
        }
        pref = (device_pref or "").lower()
        if pref == "cpu":
            return ["CPUExecutionProvider"]
        desired = pref_map.get(pref)
        if desired and desired in selected:
            selected.insert(0, selected.pop(selected.index(desired)))

        return selected or ["CPUExecutionProvider"]

    @staticmethod
    def _infer_device(providers: list[str]) -> str:
        provs = [p.lower() for p in providers]
        if any("cuda" in p for p in provs):
            return "cuda"
        if any("coreml" in p for p in provs):
            return "coreml"
        if any("dml" in p for p in provs):
            return "directml"
        if any("openvino" in p for p in provs):
            return "openvino"
        return "cpu"

    # ------------------------------------------------------------------ #
    # Initialization & runtime info
    # ------------------------------------------------------------------ #

    @override
    def initialize(self) -> None:
        if self._initialized:
            return

        start = time.time()
        sess_options = ort.SessionOptions()
        sess_options.graph_optimization_level = (
            ort.GraphOptimizationLevel.ORT_ENABLE_ALL
        )

        detector = self._create_session(self.resources.detection_path, sess_options)
        recognizer = self._create_session(
            self.resources.recognition_path, sess_options
        )

        self._handles = ModelHandles(
            detector=detector,
            recognizer=recognizer,
            detector_input=self._resolve_input_name(
                detector, self.settings.detection.input_name
            ),
            recognizer_input=self._resolve_input_name(
                recognizer, self.settings.recognition.input_name
            ),
        )
        self._embedding_dim = self._infer_embedding_dim(recognizer)
        self._load_time_seconds = time.time() - start
        self._initialized = True
        logger.info(
            "ONNXRTBackend ready in %.2fs (providers=%s, detector input=%s, recognizer input=%s)",
            self._load_time_seconds,
            ",".join(self._providers),
            self._handles.detector_input,
            self._handles.recognizer_input,
        )

    def _create_session(self, path, sess_options) -> Any:
        if not path.exists():
            raise ONNXRTModelLoadingError(f"Model not found: {path}")
        try:
            return ort.InferenceSession(
                str(path), sess_options, providers=self._providers
            )
        except Exception as exc:
            raise ONNXRTModelLoadingError(
                f"Failed to load ONNX model {path.name}: {exc}"
            ) from exc

    @staticmethod
    def _resolve_input_name(session: Any, configured: str | None) -> str:
        names = [inp.name for inp in session.get_inputs()]
        if configured:
            if configured not in names:
                raise ONNXRTModelLoadingError(
                    f"Input '{configured}' not found in model inputs {names}"
                )
            return configured
        if not names:
            raise ONNXRTModelLoadingError("Model declares no inputs")
        return names[0]

    @staticmethod
    def _infer_embedding_dim(session: Any) -> int | None:
        outputs = session.get_outputs()
        if not outputs:
            return None
        shape = outputs[0].shape
        if shape and isinstance(shape[-1], int) and shape[-1] > 0:
            return int(shape[-1])
        return None

    @override
    def get_runtime_info(self) -> BackendInfo:
        version = getattr(ort, "__version__", None)
        return BackendInfo(
            runtime="onnx",
            device=self._infer_device(self._providers),
            detection_model=self.resources.detection_file,
            recognition_model=self.resources.recognition_file,
            version=version,
            face_embedding_dim=self._embedding_dim,
            load_time=self._load_time_seconds,
            extra={
                "providers": ",".join(self._providers),
                "detection_input": self._handles.detector_input
                if self._handles
                else None,
                "recognition_input": self._handles.recognizer_input
                if self._handles
                else None,
            },
        )

    # ------------------------------------------------------------------ #
    # Inference
    # ------------------------------------------------------------------ #

    @override
    def run_detector(
        self, tensor: npt.NDArray[np.float32]
    ) -> dict[str, npt.NDArray[np.float32]]:
        self._require_initialized()
        assert self._handles is not None

        session = self._handles.detector
        batch = self._batch(tensor)
        try:
            outputs = session.run(None, {self._handles.detector_input: batch})
        except Exception as exc:
            raise InferenceError(f"Face detection failed: {exc}") from exc

        names = [out.name for out in session.get_outputs()]
        return {name: np.asarray(value) for name, value in zip(names, outputs)}

    @override
    def run_recognizer(
        self, tensor: npt.NDArray[np.float32]
    ) -> list[npt.NDArray[np.float32]]:
        self._require_initialized()
        assert self._handles is not None

        batch = self._batch(tensor)
        try:
            outputs = self._handles.recognizer.run(
                None, {self._handles.recognizer_input: batch}
            )
        except Exception as exc:
            raise InferenceError(f"Face embedding extraction failed: {exc}") from exc
        return [np.asarray(value) for value in outputs]

    @staticmethod
    def _batch(tensor: npt.NDArray[np.float32]) -> npt.NDArray[np.float32]:
        array = np.asarray(tensor, dtype=np.float32)
        if array.ndim == 3:
            array = array[np.newaxis, ...]
        return np.ascontiguousarray(array)
