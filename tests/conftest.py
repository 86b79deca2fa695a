"""
Pytest configuration and shared fixtures for face-search tests.

The fake backend stands in for the two ONNX models: its detector emits SCRFD
shaped outputs that contain one valid face anchor for bright images and none
for dark ones, and its recognizer derives a deterministic embedding from the
input tensor.
"""

import cv2
import numpy as np
import pytest
from typing_extensions import override

from face_search.backends.base import BackendInfo, FaceModelBackend
from face_search.config import ModelSettings, ServerSettings
from face_search.detection.scrfd import DecoderSpec
from face_search.general_face.face_model import FaceModelManager
from face_search.general_face.face_service import FaceSearchService
from face_search.storage.memory_store import InMemoryFaceStore

EMBEDDING_DIM = 512


def make_detector_outputs(
    spec=None, face_stride=None, face_anchor=0, logit=5.0, distances=(3.0, 3.0, 3.0, 3.0)
):
    """Build SCRFD style outputs keyed like a real export.

    When ``face_stride`` is given, anchor ``face_anchor`` at that stride gets
    ``logit`` and ``distances`` (in stride units); every other anchor has a
    strongly negative logit.
    """
    spec = spec or DecoderSpec()
    outputs = {}
    for i, stride in enumerate(spec.strides):
        n = int(spec.expected_anchors(stride))
        scores = np.full((n, 1), -10.0, dtype=np.float32)
        bboxes = np.ones((n, 4), dtype=np.float32)
        if stride == face_stride:
            scores[face_anchor, 0] = logit
            bboxes[face_anchor] = distances
        outputs[f"score_{i}"] = scores
        outputs[f"bbox_{i}"] = bboxes
        # landmark head, ignored by the decoder
        outputs[f"kps_{i}"] = np.zeros((n, 10), dtype=np.float32)
    return outputs


class FakeFaceBackend(FaceModelBackend):
    """In-process backend: bright inputs contain a face, dark inputs do not."""

    def __init__(self, embedding_dim=EMBEDDING_DIM):
        super().__init__()
        self.embedding_dim = embedding_dim
        self.detector_calls = 0
        self.recognizer_calls = 0
        self.initialize_calls = 0

    @override
    def initialize(self):
        self.initialize_calls += 1
        self._initialized = True

    @override
    def get_runtime_info(self):
        return BackendInfo(
            runtime="fake",
            device="cpu",
            detection_model="scrfd.onnx",
            recognition_model="arcface.onnx",
            face_embedding_dim=self.embedding_dim,
        )

    @override
    def run_detector(self, tensor):
        self._require_initialized()
        self.detector_calls += 1
        assert tensor.shape == (3, 640, 640)
        if float(tensor.mean()) > 0.0:
            return make_detector_outputs(face_stride=8, face_anchor=0)
        return make_detector_outputs()

    @override
    def run_recognizer(self, tensor):
        self._require_initialized()
        self.recognizer_calls += 1
        assert tensor.shape == (3, 112, 112)
        flat = tensor.reshape(-1).astype(np.float32)
        step = flat.size // self.embedding_dim
        embedding = flat[::step][: self.embedding_dim]
        return [embedding.reshape(1, -1)]


def encode_png(rgb):
    """Encode an RGB array as PNG bytes."""
    ok, buf = cv2.imencode(".png", cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR))
    assert ok
    return buf.tobytes()


def face_like_image(seed=0, size=160):
    """Bright random RGB image; the fake detector reports a face in it."""
    rng = np.random.default_rng(seed)
    return rng.integers(140, 256, (size, size, 3), dtype=np.uint8)


def blank_image(size=160):
    return np.zeros((size, size, 3), dtype=np.uint8)


@pytest.fixture
def fake_backend():
    return FakeFaceBackend()


@pytest.fixture
def face_model(fake_backend):
    model = FaceModelManager(fake_backend, ModelSettings())
    model.initialize()
    return model


@pytest.fixture
def memory_store():
    return InMemoryFaceStore(embedding_dim=EMBEDDING_DIM)


@pytest.fixture
def output_dir(tmp_path):
    return tmp_path / "output"


@pytest.fixture
def service(face_model, memory_store, output_dir):
    svc = FaceSearchService(
        model=face_model,
        store=memory_store,
        server_settings=ServerSettings(output_dir=output_dir),
    )
    svc.initialize()
    return svc


@pytest.fixture
def image_dir(tmp_path):
    path = tmp_path / "images"
    path.mkdir()
    return path


@pytest.fixture
def face_image_path(image_dir):
    """PNG file the fake detector accepts."""
    path = image_dir / "face.png"
    path.write_bytes(encode_png(face_like_image(seed=1)))
    return str(path)


@pytest.fixture
def blank_image_path(image_dir):
    """PNG file without a face."""
    path = image_dir / "blank.png"
    path.write_bytes(encode_png(blank_image()))
    return str(path)


@pytest.fixture
def face_image_paths(image_dir):
    """Ten distinct face images."""
    paths = []
    for seed in range(10):
        path = image_dir / f"face_{seed}.png"
        path.write_bytes(encode_png(face_like_image(seed=100 + seed)))
        paths.append(str(path))
    return paths


@pytest.fixture
def mock_onnx_model_dir(tmp_path):
    """Model directory with placeholder detector and recognizer files."""
    model_dir = tmp_path / "models"
    model_dir.mkdir()
    (model_dir / "scrfd.onnx").write_bytes(b"mock scrfd")
    (model_dir / "arcface.onnx").write_bytes(b"mock arcface")
    return model_dir
