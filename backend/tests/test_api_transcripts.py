"""HTTP surface: auth, ownership, uploads, metadata, reads, exports, refresh.

The app runs against the in-process store and mock providers; the
lifespan is skipped and services are installed directly on app.state.
"""
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import asyncio
import io

import jwt
import pytest
from docx import Document
from fastapi.testclient import TestClient

from api.deps import Services
from auth.tokens import JWTIdentityVerifier
from config.settings import Settings
from exports.renderers import DOCX_MEDIA_TYPE
from storage.signer import MockUploadUrlSigner
from store.memory import InMemoryDocumentStore
from stt.provider.interface import SpeechOperation
from stt.provider.mock import MockSpeechOperations
from transcripts.repository import TranscriptRepository

import server

SECRET = "transcript-test-secret-0123456789abcdef"
JSON = {"Accept": "application/json"}


def _auth(user_id="user-1", **extra):
    claims = {"user_id": user_id} if user_id else {}
    claims.update(extra)
    return {"Authorization": f"Bearer {jwt.encode(claims, SECRET, algorithm='HS256')}"}


@pytest.fixture
def services():
    settings = Settings(
        JWT_SECRET=SECRET,
        STORE_BACKEND="memory",
        MOCK_STORAGE=True,
        MOCK_SPEECH=True,
        GCS_BUCKET="test-bucket",
    )
    store = InMemoryDocumentStore()
    return Services(
        settings=settings,
        store=store,
        repository=TranscriptRepository(store, delete_batch_size=2),
        speech=MockSpeechOperations(),
        signer=MockUploadUrlSigner(settings.GCS_BUCKET),
        verifier=JWTIdentityVerifier(SECRET),
    )


@pytest.fixture
def client(services):
    server.app.state.services = services
    yield TestClient(server.app)
    del server.app.state.services


def _create(client, transcript_id="t1", user="user-1"):
    response = client.post(
        f"/api/transcripts/{transcript_id}",
        json={"originalMimeType": "audio/mpeg"},
        headers={**_auth(user), **JSON},
    )
    assert response.status_code == 202
    return response


class TestAuth:

    def test_missing_token_is_403(self, client):
        response = client.get("/api/hello")
        assert response.status_code == 403
        assert response.json() == {"detail": "Unauthorized"}

    def test_bad_token_is_403(self, client):
        response = client.get("/api/hello", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 403

    def test_session_cookie_accepted(self, client):
        token = jwt.encode({"user_id": "cookie-user"}, SECRET, algorithm="HS256")
        response = client.get("/api/hello", headers={"Cookie": f"__session={token}"})
        assert response.status_code == 200
        assert response.text == "Hello cookie-user"

    def test_hello(self, client):
        response = client.get("/api/hello", headers=_auth())
        assert response.text == "Hello user-1"

    def test_health_needs_no_token(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["store_backend"] == "memory"
        assert response.json()["speech_healthy"] is True


class TestTranscriptId:

    def test_json(self, client):
        response = client.post("/api/transcriptId", headers={**_auth(), **JSON})
        assert response.status_code == 200
        assert len(response.json()["transcriptId"]) == 20

    def test_plain_text(self, client):
        response = client.post("/api/transcriptId", headers=_auth())
        assert response.headers["content-type"].startswith("text/plain")
        assert len(response.text) == 20


class TestUploadUrl:

    def test_json_url_for_callers_media(self, client):
        response = client.post(
            "/api/uploadUrl?transcriptId=t1",
            headers={**_auth(), **JSON, "X-Content-Type": "audio/mpeg"},
        )
        assert response.status_code == 200
        url = response.json()["uploadUrl"]
        assert "media/user-1/t1-original" in url
        assert "contentType=audio%2Fmpeg" in url

    def test_plain_text_is_201(self, client):
        response = client.post(
            "/api/uploadUrl?transcriptId=t1",
            headers={**_auth(), "X-Content-Type": "audio/mpeg"},
        )
        assert response.status_code == 201
        assert response.text.startswith("https://")

    def test_missing_transcript_id(self, client):
        response = client.post("/api/uploadUrl", headers={**_auth(), "X-Content-Type": "audio/mpeg"})
        assert response.status_code == 422

    def test_missing_content_type(self, client):
        response = client.post("/api/uploadUrl?transcriptId=t1", headers=_auth())
        assert response.status_code == 422
        assert "X-Content-Type" in response.json()["detail"]

    def test_token_without_user_id(self, client):
        response = client.post(
            "/api/uploadUrl?transcriptId=t1",
            headers={**_auth(user_id=None, email="x@example.com"), "X-Content-Type": "audio/mpeg"},
        )
        assert response.status_code == 422


class TestTranscriptMetadata:

    def test_create_points_to_status(self, client, services):
        response = _create(client)

        assert response.headers["location"] == "/api/transcripts/t1"
        transcript = asyncio.run(services.repository.get_transcript("t1"))
        assert transcript["userId"] == "user-1"
        assert transcript["metadata"]["languageCodes"] == ["nb-NO"]
        assert transcript["status"]["progress"] == "UPLOADING"

    def test_query_parameters_accepted(self, client, services):
        response = client.post(
            "/api/transcripts/t2?originalMimeType=audio/ogg&languageCode=en-US",
            headers=_auth(),
        )
        assert response.status_code == 202
        transcript = asyncio.run(services.repository.get_transcript("t2"))
        assert transcript["metadata"] == {"originalMimeType": "audio/ogg", "languageCodes": ["en-US"]}

    def test_missing_mime_type(self, client):
        response = client.post("/api/transcripts/t1", json={}, headers=_auth())
        assert response.status_code == 422

    def test_other_user_cannot_claim_existing_transcript(self, client, services):
        _create(client)

        response = client.post(
            "/api/transcripts/t1",
            json={"originalMimeType": "audio/ogg"},
            headers={**_auth("intruder"), **JSON},
        )

        assert response.status_code == 404
        transcript = asyncio.run(services.repository.get_transcript("t1"))
        assert transcript["userId"] == "user-1"
        assert transcript["metadata"]["originalMimeType"] == "audio/mpeg"
        assert client.get("/api/transcripts/t1", headers=_auth()).status_code == 200
        assert client.get("/api/transcripts/t1", headers=_auth("intruder")).status_code == 404

    def test_owner_can_repost_metadata(self, client, services):
        _create(client)

        response = client.post(
            "/api/transcripts/t1",
            json={"originalMimeType": "audio/ogg"},
            headers={**_auth(), **JSON},
        )

        assert response.status_code == 202
        transcript = asyncio.run(services.repository.get_transcript("t1"))
        assert transcript["metadata"]["originalMimeType"] == "audio/ogg"


class TestReadAndExport:

    def test_owner_reads_transcript_with_paragraphs(self, client, services):
        _create(client)
        asyncio.run(services.repository.add_paragraph("t1", {"startTime": 0.0, "text": "hei"}, 100))

        response = client.get("/api/transcripts/t1", headers=_auth())

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == "t1"
        assert body["paragraphs"] == [{"startTime": 0.0, "text": "hei", "words": []}]

    def test_foreign_transcript_is_404(self, client):
        _create(client)
        response = client.get("/api/transcripts/t1", headers=_auth("someone-else"))
        assert response.status_code == 404

    def test_absent_transcript_is_404(self, client):
        response = client.get("/api/transcripts/missing", headers=_auth())
        assert response.status_code == 404

    def test_export_xmp(self, client):
        _create(client)
        response = client.get(
            "/api/transcripts/t1/export",
            headers={**_auth(), "Accept": "application/xmp"},
        )
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/xmp")
        assert 'filename="t1.xmp"' in response.headers["content-disposition"]

    def test_export_docx(self, client, services):
        _create(client)
        asyncio.run(services.repository.add_paragraph("t1", {"startTime": 0.0, "text": "hei"}, 100))

        response = client.get(
            "/api/transcripts/t1/export",
            headers={**_auth(), "Accept": "application/docx"},
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith(DOCX_MEDIA_TYPE)
        texts = [p.text for p in Document(io.BytesIO(response.content)).paragraphs]
        assert any(text.endswith("hei") for text in texts)

    def test_export_unknown_format(self, client):
        _create(client)
        response = client.get("/api/transcripts/t1/export", headers={**_auth(), "Accept": "text/html"})
        assert response.status_code == 422
        assert "application/json" in response.json()["detail"]

    def test_export_foreign_is_404(self, client):
        _create(client)
        response = client.get(
            "/api/transcripts/t1/export",
            headers={**_auth("someone-else"), "Accept": "application/json"},
        )
        assert response.status_code == 404


class TestRefreshAndOperations:

    def test_refresh_runs_then_completes(self, client, services):
        _create(client)
        asyncio.run(services.repository.update_google_speech_transcribe_reference("t1", "operations/7"))
        url = "/api/transcriptions/t1/refreshFromGoogleSpeech"

        first = client.post(url, headers={**_auth(), **JSON})
        second = client.post(url, headers={**_auth(), **JSON})

        assert first.json() == {"progress": "TRANSCRIBING"}
        assert second.json() == {"progress": "DONE"}
        body = client.get("/api/transcripts/t1", headers=_auth()).json()
        assert [p["text"] for p in body["paragraphs"]] == [
            "Hei og velkommen", "til dagens opptak", "takk for at du lyttet",
        ]

    def test_refresh_failure_is_500_with_error(self, client, services):
        _create(client)
        asyncio.run(services.repository.update_google_speech_transcribe_reference("t1", "operations/bad"))
        services.speech.set_operation("operations/bad", SpeechOperation(
            name="operations/bad", done=True, error={"code": 3, "message": "bad audio"},
        ))

        response = client.post("/api/transcriptions/t1/refreshFromGoogleSpeech", headers=_auth())

        assert response.status_code == 500
        assert response.json()["name"] == "UpstreamServiceError"

    def test_refresh_foreign_is_404(self, client):
        _create(client)
        response = client.post("/api/transcriptions/t1/refreshFromGoogleSpeech", headers=_auth("intruder"))
        assert response.status_code == 404

    def test_get_operation(self, client, services):
        services.speech.set_operation("operations/9", SpeechOperation(
            name="operations/9", done=False, percent=12, metadata={"progressPercent": 12},
        ))
        response = client.get("/api/operations/operations/9", headers=_auth())
        assert response.status_code == 200
        assert response.json()["percent"] == 12
        assert "results" not in response.json()


class TestDelete:

    def test_owner_deletes(self, client, services):
        _create(client)
        for start in range(3):
            asyncio.run(services.repository.add_paragraph("t1", {"startTime": float(start)}, 0))

        response = client.delete("/api/transcripts/t1", headers=_auth())

        assert response.status_code == 204
        assert client.get("/api/transcripts/t1", headers=_auth()).status_code == 404
        assert asyncio.run(services.repository.get_paragraphs("t1")) == []

    def test_foreign_delete_is_404(self, client, services):
        _create(client)
        response = client.delete("/api/transcripts/t1", headers=_auth("intruder"))
        assert response.status_code == 404
        assert asyncio.run(services.repository.get_transcript("t1")) is not None
