"""
End-to-end HTTP tests: FastAPI app + service + fake backend + memory store.
"""

import base64
from pathlib import Path
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from face_search.api import create_app
from face_search.exceptions import InferenceError, ModelNotInitializedError
from face_search.general_face.face_service import FaceSearchService


@pytest.fixture
def client(service):
    with TestClient(create_app(service)) as test_client:
        yield test_client


class TestStoreEmbeddingEndpoint:
    def test_store_and_list(self, client, face_image_path):
        response = client.post("/store_embedding", json={"image_path": face_image_path})

        assert response.status_code == 200
        face_id = response.json()["id"]
        listed = client.get("/list").json()
        assert listed[0]["id"] == face_id
        assert "created_at" in listed[0]

    def test_no_face(self, client, blank_image_path):
        response = client.post("/store_embedding", json={"image_path": blank_image_path})

        assert response.status_code == 400
        assert response.json() == {"error": "no_face_detected"}

    def test_missing_path(self, client):
        response = client.post("/store_embedding", json={})

        assert response.status_code == 400
        assert response.json() == {"error": "Missing image_path"}

    def test_missing_body(self, client):
        response = client.post("/store_embedding")

        assert response.status_code == 400
        assert response.json() == {"error": "Missing image_path"}

    def test_unparseable_body(self, client):
        response = client.post(
            "/store_embedding",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )

        assert response.status_code == 400
        assert "error" in response.json()

    def test_unreadable_file_is_internal_error(self, client, tmp_path):
        response = client.post(
            "/store_embedding", json={"image_path": str(tmp_path / "gone.png")}
        )

        assert response.status_code == 500
        assert response.json() == {"error": "internal error"}


class TestCompareEndpoint:
    def test_same_image(self, client, face_image_path):
        response = client.post(
            "/compare",
            json={"image_path_A": face_image_path, "image_path_B": face_image_path},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["cosine"] == pytest.approx(1.0)
        assert body["euclidean"] == pytest.approx(0.0, abs=1e-6)

    def test_missing_image(self, client, face_image_path):
        response = client.post("/compare", json={"image_path_A": face_image_path})

        assert response.status_code == 400
        assert response.json() == {"error": "Missing images"}

    def test_no_face(self, client, face_image_path, blank_image_path):
        response = client.post(
            "/compare",
            json={"image_path_A": blank_image_path, "image_path_B": face_image_path},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "no_face_detected"}


class TestSearchEndpoint:
    def test_top_k_three_of_ten(self, client, face_image_paths):
        ids = [
            client.post("/store_embedding", json={"image_path": p}).json()["id"]
            for p in face_image_paths
        ]

        response = client.post(
            "/search", json={"image_path": face_image_paths[7], "top_k": 3}
        )

        assert response.status_code == 200
        hits = response.json()
        assert len(hits) <= 3
        assert hits[0]["id"] == ids[7]
        distances = [1.0 - h["cosine"] for h in hits]
        assert distances == sorted(distances)

    @pytest.mark.parametrize("top_k", [0, -1, "x", None, 10**400])
    def test_bad_top_k_rejected_before_inference(
        self, client, fake_backend, face_image_path, top_k
    ):
        response = client.post(
            "/search", json={"image_path": face_image_path, "top_k": top_k}
        )

        assert response.status_code == 400
        assert response.json()["error"] in {"Invalid top_k", "Missing params"}
        assert fake_backend.detector_calls == 0
        assert fake_backend.recognizer_calls == 0

    def test_missing_params(self, client):
        response = client.post("/search", json={"top_k": 3})

        assert response.status_code == 400
        assert response.json() == {"error": "Missing params"}


class TestRecordEndpoints:
    def test_list_limit(self, client, face_image_paths):
        for path in face_image_paths[:5]:
            client.post("/store_embedding", json={"image_path": path})

        assert len(client.get("/list", params={"limit": 2}).json()) == 2
        assert len(client.get("/list", params={"limit": "3.5"}).json()) == 3
        assert len(client.get("/list", params={"limit": "4abc"}).json()) == 4
        assert len(client.get("/list", params={"limit": "bogus"}).json()) == 5
        assert len(client.get("/list", params={"limit": -4}).json()) == 5

    def test_list_defaults_to_ten(self, client, face_image_paths):
        for path in face_image_paths:
            client.post("/store_embedding", json={"image_path": path})
        client.post("/store_embedding", json={"image_path": face_image_paths[0]})

        assert len(client.get("/list").json()) == 10

    def test_image_roundtrip(self, client, face_image_path, output_dir):
        face_id = client.post(
            "/store_embedding", json={"image_path": face_image_path}
        ).json()["id"]

        response = client.get(f"/image/{face_id}")

        assert response.status_code == 200
        body = response.json()
        saved = Path(body["saved_to"])
        assert saved.parent == output_dir.resolve()
        assert saved.suffix == ".png"
        assert base64.b64decode(body["image_base64"]) == saved.read_bytes()

    def test_image_not_found(self, client):
        response = client.get("/image/unknown-id")

        assert response.status_code == 404
        assert response.json() == {"error": "not found"}

    def test_delete(self, client, face_image_path):
        face_id = client.post(
            "/store_embedding", json={"image_path": face_image_path}
        ).json()["id"]

        response = client.delete(f"/item/{face_id}")
        assert response.status_code == 200
        assert response.json() == {"deleted_id": face_id}

        again = client.delete(f"/item/{face_id}")
        assert again.status_code == 404
        assert again.json() == {"error": "not found"}
        assert client.get(f"/image/{face_id}").status_code == 404


class TestErrorMapping:
    def test_inference_failure_hidden(self, client, service, face_image_path):
        with patch.object(
            service.model, "prepare_embedding", side_effect=InferenceError("onnx exploded")
        ):
            response = client.post("/store_embedding", json={"image_path": face_image_path})

        assert response.status_code == 500
        assert response.json() == {"error": "internal error"}

    def test_model_not_initialized_is_500(self, client, service, face_image_path):
        with patch.object(
            service.model,
            "prepare_embedding",
            side_effect=ModelNotInitializedError("Face models not initialized"),
        ):
            response = client.post(
                "/compare",
                json={"image_path_A": face_image_path, "image_path_B": face_image_path},
            )

        assert response.status_code == 500
        assert response.json() == {"error": "internal error"}

    def test_undecodable_image_is_500(self, client, image_dir):
        path = image_dir / "broken.png"
        path.write_bytes(b"not really a png")

        response = client.post("/store_embedding", json={"image_path": str(path)})

        assert response.status_code == 500
        assert response.json() == {"error": "internal error"}


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["models_ready"] is True
        assert isinstance(body["version"], str)

    def test_lifespan_initializes_service(self, face_model, memory_store):
        service = FaceSearchService(model=face_model, store=memory_store)
        assert not service.is_initialized

        with TestClient(create_app(service)) as client:
            assert client.get("/health").json()["models_ready"] is True
        assert service.is_initialized
