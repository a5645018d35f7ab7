"""
Integration tests for the HTTP endpoints.

The lifespan hook (which wires real backends) is not entered: tests
install generators with fake backends directly.
"""
import pytest
from fastapi.testclient import TestClient

from app import server
from conftest import FakeChatBackend, flashcard_payload, prose, quiz_payload
from studygen.generation.generator import ItemGenerator
from studygen.generation.item_kinds import FlashcardKind, QuizKind

client = TestClient(server.app)


@pytest.fixture
def generators():
    server._generators["quiz"] = ItemGenerator(
        QuizKind(), FakeChatBackend(["raw quiz text"]), FakeChatBackend([quiz_payload(5)])
    )
    server._generators["flashcard"] = ItemGenerator(
        FlashcardKind(), FakeChatBackend(["raw card text"]), FakeChatBackend([flashcard_payload(10)])
    )
    yield server._generators
    server._generators.clear()


class TestHealthEndpoint:
    def test_not_ready_without_generators(self):
        server._generators.clear()
        response = client.get("/api/health")
        assert response.status_code == 503

    def test_health_check(self, generators):
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["generators"] == ["flashcard", "quiz"]
        assert data["raw_model"] == "fake-model"


class TestQuizEndpoint:
    def test_generates_requested_count(self, generators):
        response = client.post(
            "/api/quiz/generate",
            json={"content": prose(600), "numQuestions": 5, "difficulty": "hard"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert len(data["items"]) == 5
        assert data["items"][0]["correctAnswer"] == "b"
        assert data["metadata"]["generation_method"] == "hybrid"

    def test_pads_when_model_returns_fewer(self, generators):
        response = client.post("/api/quiz/generate", json={"content": prose(600), "numQuestions": 8})
        assert response.status_code == 200
        assert len(response.json()["items"]) == 8

    def test_empty_content_rejected(self, generators):
        response = client.post("/api/quiz/generate", json={"content": "   "})
        assert response.status_code == 400

    @pytest.mark.parametrize(
        "body",
        [
            {"content": "text", "numQuestions": 0},
            {"content": "text", "numQuestions": 500},
            {"content": "text", "difficulty": "impossible"},
            {"content": "text", "questionType": "essay"},
            {"numQuestions": 3},
        ],
    )
    def test_invalid_requests_rejected(self, generators, body):
        response = client.post("/api/quiz/generate", json=body)
        assert response.status_code == 422


class TestFlashcardEndpoint:
    def test_generates_default_count(self, generators):
        response = client.post("/api/flashcards/generate", json={"content": prose(600)})
        assert response.status_code == 200
        data = response.json()
        assert len(data["items"]) == 10
        assert {"question", "answer", "front", "back"} <= set(data["items"][0])

    def test_not_ready_returns_503(self):
        server._generators.clear()
        response = client.post("/api/flashcards/generate", json={"content": "text"})
        assert response.status_code == 503
