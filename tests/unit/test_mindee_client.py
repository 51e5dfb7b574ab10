"""Tests for Mindee extraction client."""

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock

from policybot.core.session.models import DocumentKind
from policybot.infra.mindee import ExtractionError, MindeeClient, make_human_readable

FILE_URL = "https://api.telegram.org/file/bot123:abc/photos/file_1.jpg"


def make_response(body: dict):
    """Create mock httpx response."""
    response = MagicMock()
    response.status_code = 200
    response.json.return_value = body
    response.raise_for_status = MagicMock()
    return response


def passport_inference() -> dict:
    return {
        "id": "inf-1",
        "result": {
            "fields": {
                "given_names": {"items": [{"value": "JOHN"}, {"value": "PAUL"}]},
                "surnames": {"items": [{"value": "DOE"}]},
                "date_of_birth": {"value": "1990-01-01"},
                "passport_number": {"value": "AB123456"},
                "date_of_issue": {"value": "2020-01-01"},
                "date_of_expiry": {"value": "2030-01-01"},
                "mrz_line_1": {"value": "P<UTODOE<<JOHN<PAUL"},
            }
        },
    }


class TestMakeHumanReadable:
    """Test key relabelling."""

    def test_known_and_unknown_keys(self):
        assert make_human_readable({"given_names": "JOHN", "extra": 1}) == {"Name": "JOHN", "extra": "1"}


class TestMindeeClient:
    """Test MindeeClient."""

    @pytest.fixture
    def client(self):
        """Create client with mock HTTP and no polling delay."""
        client = MindeeClient(api_key="key", base_url="https://api-v2.mindee.net")
        client.model_ids = {
            DocumentKind.PASSPORT: "passport-model",
            DocumentKind.DRIVERS_LICENSE: "license-model",
        }
        client.poll_interval = 0
        client.max_polls = 3
        client._client = AsyncMock()
        return client

    @pytest.mark.asyncio
    async def test_extract_passport(self, client):
        """Test enqueue, poll and relabel."""
        client._client.post.return_value = make_response({"job": {"id": "job-1", "status": "Processing"}})
        client._client.get.side_effect = [
            make_response({"job": {"id": "job-1", "status": "Processing"}}),
            make_response({"inference": passport_inference()}),
        ]

        fields = await client.extract(FILE_URL, DocumentKind.PASSPORT)

        assert fields == {
            "Name": "JOHN PAUL",
            "Surname": "DOE",
            "Date of Birth": "1990-01-01",
            "Passport Number": "AB123456",
            "Date of Issue": "2020-01-01",
            "Date of Expiry": "2030-01-01",
        }

        args, kwargs = client._client.post.call_args
        assert args[0] == "/v2/inferences/enqueue"
        assert kwargs["data"]["model_id"] == "passport-model"
        assert kwargs["data"]["url"] == FILE_URL
        assert client._client.get.call_args_list[0].args[0] == "/v2/jobs/job-1"

    @pytest.mark.asyncio
    async def test_extract_follows_result_url(self, client):
        client._client.post.return_value = make_response({"job": {"id": "job-1"}})
        client._client.get.side_effect = [
            make_response({"job": {"id": "job-1", "status": "Processed", "result_url": "/v2/inferences/inf-1"}}),
            make_response({"inference": passport_inference()}),
        ]

        fields = await client.extract(FILE_URL, DocumentKind.PASSPORT)

        assert fields["Passport Number"] == "AB123456"
        assert client._client.get.call_args_list[1].args[0] == "/v2/inferences/inf-1"

    @pytest.mark.asyncio
    async def test_failed_job(self, client):
        client._client.post.return_value = make_response({"job": {"id": "job-1"}})
        client._client.get.return_value = make_response(
            {"job": {"id": "job-1", "status": "Failed", "error": {"detail": "unreadable"}}}
        )

        with pytest.raises(ExtractionError):
            await client.extract(FILE_URL, DocumentKind.PASSPORT)

    @pytest.mark.asyncio
    async def test_poll_timeout(self, client):
        client._client.post.return_value = make_response({"job": {"id": "job-1"}})
        client._client.get.return_value = make_response({"job": {"id": "job-1", "status": "Processing"}})

        with pytest.raises(ExtractionError):
            await client.extract(FILE_URL, DocumentKind.PASSPORT)

        assert client._client.get.await_count == 3

    @pytest.mark.asyncio
    async def test_missing_job_id(self, client):
        client._client.post.return_value = make_response({"error": "bad model"})

        with pytest.raises(ExtractionError):
            await client.extract(FILE_URL, DocumentKind.PASSPORT)

    @pytest.mark.asyncio
    async def test_http_error_wrapped(self, client):
        client._client.post.side_effect = httpx.ConnectError("connection refused")

        with pytest.raises(ExtractionError):
            await client.extract(FILE_URL, DocumentKind.PASSPORT)

    @pytest.mark.asyncio
    async def test_fields_not_matching_schema(self, client):
        """Test a passport model result read as a driver's license fails validation."""
        client._client.post.return_value = make_response({"job": {"id": "job-1"}})
        client._client.get.return_value = make_response({"inference": passport_inference()})

        with pytest.raises(ExtractionError):
            await client.extract(FILE_URL, DocumentKind.DRIVERS_LICENSE)

    @pytest.mark.asyncio
    async def test_missing_value_fails_validation(self, client):
        inference = passport_inference()
        inference["result"]["fields"]["passport_number"] = {"value": None}
        client._client.post.return_value = make_response({"job": {"id": "job-1"}})
        client._client.get.return_value = make_response({"inference": inference})

        with pytest.raises(ExtractionError):
            await client.extract(FILE_URL, DocumentKind.PASSPORT)
