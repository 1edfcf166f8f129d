import base64

import pytest
from fastapi.testclient import TestClient
from unittest.mock import MagicMock, patch

from app.models.models import PDFText
from app.services.orchestrator import AnalysisOrchestrator
from app.utils.exceptions import DatabaseError, ExternalServiceFatalError


@pytest.fixture
def orchestrator(store):
    return AnalysisOrchestrator(None, store)


@pytest.fixture
def test_app(orchestrator, store):
    from fastapi import FastAPI
    from app.routers import analysis, match_scores

    app = FastAPI()
    app.include_router(analysis.router)
    app.include_router(match_scores.router)
    app.state.orchestrator = orchestrator
    app.state.store = store
    return app


@pytest.fixture
def client(test_app):
    return TestClient(test_app)


@pytest.fixture
def requirement_json(requirement):
    return requirement.model_dump()


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


class TestAnalysisRouter:
    """Test cases for the synchronous analysis endpoints"""

    def test_resume_rejects_non_pdf(self, client):
        response = client.post("/analysis/resume", json={"resume_base64": _b64(b"PK\x03\x04 zip")})

        assert response.status_code == 415

    def test_resume_rejects_bad_base64(self, client):
        response = client.post("/analysis/resume", json={"resume_base64": "%%%"})
        assert response.status_code == 400

    @patch('app.routers.analysis.extract_from_pdf')
    def test_resume_success(self, mock_extract, client, resume_text):
        mock_extract.return_value = PDFText(text=resume_text, page_count=2)

        response = client.post("/analysis/resume", json={"resume_base64": _b64(b"%PDF-1.4"), "filename": "cv.pdf"})

        assert response.status_code == 200
        data = response.json()
        assert data["page_count"] == 2
        assert data["profile"]["name"] == "Jane Doe"
        assert data["profile"]["skills"] == ["Python", "Django", "Docker"]
        assert "python" in data["signals"]["skills"]["programming"]
        assert data["signals"]["skill_groups"]["technical"] == ["Python", "Django", "Docker"]

    def test_linkedin_inline_html(self, client, profile_html):
        response = client.post("/analysis/linkedin", json={"html": profile_html})

        assert response.status_code == 200
        data = response.json()
        assert data["profile"]["name"] == "Jane Doe"
        assert data["signals"]["seniority"] == "Senior"

    def test_linkedin_requires_a_source(self, client):
        response = client.post("/analysis/linkedin", json={})
        assert response.status_code == 422

    def test_linkedin_fetch_failure(self, client, orchestrator):
        orchestrator.profile_fetcher = MagicMock(side_effect=ExternalServiceFatalError("forbidden", status_code=403))

        response = client.post("/analysis/linkedin", json={"url": "https://www.linkedin.com/in/jane"})

        assert response.status_code == 502

    def test_candidate_with_report(self, client, requirement_json, resume_text, store):
        response = client.post("/analysis/candidate", json={
            "submission": {"submission_id": "sub-9", "resume_text": resume_text},
            "requirement": requirement_json,
            "include_report": True,
        })

        assert response.status_code == 200
        data = response.json()
        assert data["record"]["submission_id"] == "sub-9"
        assert data["record"]["source"] == "local"
        assert data["report"]["breakdown"]["skills"]["weight"] == "40%"
        store.save.assert_not_called()

    def test_candidate_without_sources(self, client, requirement_json):
        response = client.post("/analysis/candidate", json={
            "submission": {"submission_id": "sub-9"},
            "requirement": requirement_json,
        })
        assert response.status_code == 400

    def test_batch(self, client, requirement_json, resume_text):
        response = client.post("/analysis/batch", json={
            "requirement": requirement_json,
            "candidates": [
                {"submission_id": "a", "resume_text": "Barista and latte artist"},
                {"submission_id": "b", "resume_text": resume_text},
                {"submission_id": "c"},
            ],
        })

        assert response.status_code == 200
        data = response.json()
        assert data["requirement_title"] == "Python Developer"
        assert data["count"] == 3
        assert data["failed"] == 1
        assert [r["submission_id"] for r in data["results"]] == ["b", "a", "c"]

    def test_batch_rejects_duplicate_ids(self, client, requirement_json):
        response = client.post("/analysis/batch", json={
            "requirement": requirement_json,
            "candidates": [{"submission_id": "a"}, {"submission_id": "a"}],
        })
        assert response.status_code == 422

    def test_skills_disabled(self, client):
        response = client.post("/analysis/skills", json={"text": "Python and Docker"})
        assert response.status_code == 503

    def test_skills(self, client, orchestrator):
        scorer = MagicMock()
        scorer.is_available.return_value = True
        scorer.extract_skills.return_value = {"technical": ["python"]}
        orchestrator.llm_scorer = scorer

        response = client.post("/analysis/skills", json={"text": "Python", "context": "backend"})

        assert response.status_code == 200
        assert response.json() == {"skills": {"technical": ["python"]}}
        scorer.extract_skills.assert_called_once_with("Python", "backend")


class TestMatchScoresRouter:
    """Test cases for scheduled analyses and stored results"""

    def test_schedule_runs_analysis_in_background(self, client, requirement_json, resume_text, store):
        response = client.post("/match-scores/submissions/sub-42", json={
            "requirement": requirement_json,
            "candidate_name": "Jane Doe",
            "resume_text": resume_text,
        })

        assert response.status_code == 202
        assert response.json() == {"submission_id": "sub-42", "status": "scheduled"}
        store.save.assert_awaited_once()
        saved = store.save.await_args.args[0]
        assert saved.submission_id == "sub-42"
        assert saved.requirement_id == "req-1"

    def test_schedule_without_sources(self, client, requirement_json, store):
        response = client.post("/match-scores/submissions/sub-42", json={"requirement": requirement_json})

        assert response.status_code == 400
        store.save.assert_not_called()

    def test_schedule_accepts_before_failing(self, client, requirement_json, store):
        response = client.post("/match-scores/submissions/sub-7", json={
            "requirement": requirement_json,
            "resume_base64": _b64(b"not a pdf"),
        })

        # extraction fails in the background task, after the 202
        assert response.status_code == 202
        store.save.assert_not_called()

    def test_get_match_score(self, client, store):
        store.get_by_submission.return_value = {"_id": "abc", "submission_id": "sub-1", "overall_score": 77}

        response = client.get("/match-scores/sub-1")

        assert response.status_code == 200
        assert response.json()["overall_score"] == 77
        store.get_by_submission.assert_awaited_once_with("sub-1")

    def test_get_match_score_not_found(self, client, store):
        store.get_by_submission.return_value = None

        response = client.get("/match-scores/missing")

        assert response.status_code == 404

    def test_stats(self, client, store):
        store.get_analysis_stats.return_value = {
            "total_analyses": 4,
            "high_score_matches": 1,
            "average_score": 62.5,
            "high_score_percentage": 25.0,
            "recent_analyses": [],
        }

        response = client.get("/match-scores/stats")

        assert response.status_code == 200
        assert response.json()["high_score_percentage"] == 25.0

    def test_stats_database_error(self, client, store):
        store.get_analysis_stats.side_effect = DatabaseError("mongo down")

        response = client.get("/match-scores/stats")

        assert response.status_code == 500
