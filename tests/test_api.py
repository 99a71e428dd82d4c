"""
Tests for Flask API routes.

Tests the REST API endpoints.
"""

import json
from unittest.mock import Mock, patch

import pytest

from api.routes import get_pipeline
from app import create_app
from config import TestingConfig


MECARD = "MECARD:N:Doe,John;ORG:Acme;EMAIL:john@acme.com;TEL:+14155551234;;"


class TestAPIRoutes:
    """Test cases for API routes."""

    @pytest.fixture
    def app(self):
        """Create test Flask app."""
        app = create_app("testing")
        app.config["TESTING"] = True
        return app

    @pytest.fixture
    def client(self, app):
        """Create test client."""
        return app.test_client()

    def post_json(self, client, url, payload):
        return client.post(url, data=json.dumps(payload), content_type="application/json")

    def test_root_endpoint(self, client):
        """Test root endpoint returns API info."""
        response = client.get("/")

        assert response.status_code == 200
        data = json.loads(response.data)
        assert "name" in data
        assert "version" in data
        assert "endpoints" in data

    def test_info_endpoint(self, client):
        """Test /api/info lists the endpoints."""
        data = json.loads(client.get("/api/info").data)
        assert "export" in data["endpoints"]

    def test_health_check(self, client):
        """Test health check endpoint."""
        response = client.get("/api/health")

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data["success"] is True
        assert data["status"] == "healthy"

    def test_status_endpoint(self, client):
        """Test status endpoint."""
        with patch("api.routes.get_pipeline") as mock_get_pipeline:
            mock_pipeline = Mock()
            mock_pipeline.get_status.return_value = {"max_workers": 2}
            mock_get_pipeline.return_value = mock_pipeline

            response = client.get("/api/status")

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data["data"]["pipeline_status"] == {"max_workers": 2}

    def test_parse_text(self, client):
        """Test free-text parsing of one card."""
        response = self.post_json(client, "/api/parse-text", {
            "text": "ACME CORP\nJohn Smith\nSenior Manager\njohn@acme.com\n+1 415 555 1234"
        })

        assert response.status_code == 200
        data = json.loads(response.data)["data"]
        assert data["accepted"] is True
        assert data["contact"]["name"] == "John Smith"
        assert data["contact"]["phones"] == ["14155551234"]

    def test_parse_text_no_text(self, client):
        """Test parse-text without text."""
        response = self.post_json(client, "/api/parse-text", {})

        assert response.status_code == 400
        assert json.loads(response.data)["success"] is False

    def test_process(self, client):
        """Test processing one image's vision output with a machine code."""
        response = self.post_json(client, "/api/process", {
            "response": json.dumps([{"name": "Johnny Doe"}, {"address": "1 Main Street"}]),
            "machine_codes": [MECARD],
        })

        assert response.status_code == 200
        data = json.loads(response.data)["data"]
        assert data["machine_codes_found"] == 1
        assert data["cards"][0]["email"] == "john@acme.com"
        assert data["errors"] == []

    def test_process_empty_response(self, client):
        """Test an empty vision response is rejected as unprocessable."""
        response = self.post_json(client, "/api/process", {"response": ""})

        assert response.status_code == 422
        assert json.loads(response.data)["success"] is False

    def test_batch(self, client):
        """Test a batch with one failed image."""
        response = self.post_json(client, "/api/batch", {
            "images": [
                {"source": "a.jpg", "response": json.dumps([{"name": "John Doe", "email": "john@acme.com"}])},
                {"source": "b.jpg", "error": "upstream 429"},
                {"source": "c.jpg", "response": json.dumps([{"name": "Jon Doe", "phones": ["+14155551234"]}])},
            ]
        })

        assert response.status_code == 200
        data = json.loads(response.data)["data"]
        assert len(data["cards"]) == 1
        assert data["merged"] == 1
        assert data["errors"] == ["Failed to process b.jpg: upstream 429"]

    def test_batch_without_dedupe(self, client):
        """Test cross-image dedup can be turned off per request."""
        response = self.post_json(client, "/api/batch", {
            "dedupe": False,
            "images": [
                {"source": "a.jpg", "response": json.dumps([{"name": "John Doe", "email": "john@acme.com"}])},
                {"source": "b.jpg", "response": json.dumps([{"name": "Jon Doe", "phones": ["+14155551234"]}])},
            ]
        })

        assert len(json.loads(response.data)["data"]["cards"]) == 2

    def test_batch_single_failed_image(self, client):
        """Test a one-image batch whose vision call failed."""
        response = self.post_json(client, "/api/batch", {
            "images": [{"source": "a.jpg", "error": "upstream 429"}]
        })

        assert response.status_code == 502
        data = json.loads(response.data)
        assert data["success"] is False
        assert "upstream 429" in data["error"]

    def test_batch_structured_upstream_error(self, client):
        """Test a non-string upstream error is reported as text."""
        response = self.post_json(client, "/api/batch", {
            "images": [
                {"source": "a.jpg", "response": json.dumps([{"name": "John Doe", "email": "john@acme.com"}])},
                {"source": "b.jpg", "error": {"code": 429}},
            ]
        })

        assert response.status_code == 200
        data = json.loads(response.data)["data"]
        assert data["errors"] == ["Failed to process b.jpg: {'code': 429}"]
        assert len(data["cards"]) == 1

    def test_batch_invalid(self, client):
        """Test batch validation."""
        assert self.post_json(client, "/api/batch", {"images": []}).status_code == 400
        assert self.post_json(client, "/api/batch", {"images": [{"source": "a.jpg"}]}).status_code == 400

    def test_decode(self, client):
        """Test machine-code classification."""
        response = self.post_json(client, "/api/decode", {
            "payloads": [MECARD, "https://acme.com", "booth 12", "BEGIN:VCARD\nEND:VCARD"]
        })

        data = json.loads(response.data)["data"]
        assert [c["type"] for c in data["machine_codes"]] == ["contact", "url", "text", "text"]
        assert data["machine_codes"][0]["extracted_info"]["name"] == "John Doe"
        assert data["errors"] == ["Machine code 4 could not be parsed as vCard"]

    def test_dedupe(self, client):
        """Test contact deduplication."""
        response = self.post_json(client, "/api/dedupe", {
            "contacts": [
                {"name": "John Doe", "email": "john@acme.com"},
                {"name": "Jon Doe", "phones": ["+14155551234"]},
            ]
        })

        data = json.loads(response.data)["data"]
        assert data["merged"] == 1
        assert data["unique"][0]["email"] == "john@acme.com"
        assert data["unique"][0]["phones"] == ["+14155551234"]

    def test_dedupe_normalizes_phones(self, client):
        """Test differently formatted copies of one number match."""
        response = self.post_json(client, "/api/dedupe", {
            "contacts": [
                {"name": "Ann Lee", "phones": ["+1 (415) 555-1234"]},
                {"company": "Acme", "phones": ["+14155551234"]},
            ]
        })

        data = json.loads(response.data)["data"]
        assert data["merged"] == 1
        assert data["unique"][0]["phones"] == ["+14155551234"]

    def test_dedupe_scalar_phones(self, client):
        """Test a scalar phones value does not fail the request."""
        response = self.post_json(client, "/api/dedupe", {
            "contacts": [{"name": "Ann Lee", "phones": 5}, {"name": "Bob Stone", "phones": "2125559876"}]
        })

        assert response.status_code == 200
        data = json.loads(response.data)["data"]
        assert data["unique"][1]["landlines"] == ["2125559876"]

    def test_quality(self, client):
        """Test quality scoring."""
        response = self.post_json(client, "/api/quality", {"contact": {"name": "Ann Lee"}})

        data = json.loads(response.data)["data"]
        assert data["score"] == 25
        assert "Missing email" in data["issues"]

    def test_export_csv(self, client):
        """Test CSV export download."""
        response = self.post_json(client, "/api/export/csv", {"contacts": [{"name": "Ann Lee"}]})

        assert response.status_code == 200
        assert response.mimetype == "text/csv"
        assert "attachment" in response.headers["Content-Disposition"]
        assert '"Ann Lee"' in response.get_data(as_text=True)

    def test_export_vcf(self, client):
        """Test vCard export download."""
        response = self.post_json(client, "/api/export/vcf", {"contacts": [{"name": "Ann Lee"}]})

        assert response.mimetype == "text/vcard"
        assert "FN:Ann Lee" in response.get_data(as_text=True)

    def test_export_invalid(self, client):
        """Test unsupported format and missing contacts."""
        assert self.post_json(client, "/api/export/xml", {"contacts": []}).status_code == 400
        assert self.post_json(client, "/api/export/json", {}).status_code == 400

    def test_404_handler(self, client):
        """Test 404 error handling."""
        response = client.get("/api/nonexistent")

        assert response.status_code == 404
        assert json.loads(response.data)["success"] is False

    def test_testing_config(self, app):
        """Test the testing profile is loaded."""
        assert app.config["TESTING"] is True
        assert app.config["PIPELINE_OPTIONS"]["max_workers"] == TestingConfig.PARALLEL_WORKERS

    def test_pipeline_per_app(self, app):
        """Test each app builds its pipeline from its own config."""
        other = create_app("testing")
        other.config["PIPELINE_OPTIONS"] = dict(other.config["PIPELINE_OPTIONS"], max_workers=7)

        with app.app_context():
            first = get_pipeline()
            assert get_pipeline() is first
        with other.app_context():
            second = get_pipeline()

        assert second is not first
        assert first.max_workers == TestingConfig.PARALLEL_WORKERS
        assert second.max_workers == 7
