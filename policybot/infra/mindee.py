"""
Mindee document extraction client.

Talks to the Mindee v2 inference API over HTTP:
- POST /v2/inferences/enqueue - start an inference for a document URL
- GET /v2/jobs/{job_id} - poll the job until it is processed
- GET /v2/inferences/{inference_id} - fetch extracted fields

Raw fields are validated against a per-document schema and relabelled
with human-readable names ("given_names" -> "Name") so the same data
reads well both to the agent and in templated summaries.
"""

import asyncio
import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from policybot.config import get_settings
from policybot.core.session.models import DocumentKind

logger = logging.getLogger(__name__)


# MIME types Mindee accepts for inference
SUPPORTED_MIME_TYPES = frozenset({
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/tiff",
    "image/heic",
    "application/pdf",
})


class ExtractionError(Exception):
    """Raised when document extraction fails."""
    pass


class RawPassportFields(BaseModel):
    """Fields returned by the passport model."""

    model_config = ConfigDict(extra="ignore")

    given_names: str
    surnames: str
    date_of_birth: str
    passport_number: str
    date_of_issue: str
    date_of_expiry: str


class RawDriversLicenseFields(BaseModel):
    """Fields returned by the driver's license model."""

    model_config = ConfigDict(extra="ignore")

    first_name: str
    last_name: str
    date_of_birth: str
    document_id: str
    issued_date: str
    expiry_date: str
    country_code: str
    category: str


SCHEMAS: dict[DocumentKind, type[BaseModel]] = {
    DocumentKind.PASSPORT: RawPassportFields,
    DocumentKind.DRIVERS_LICENSE: RawDriversLicenseFields,
}

HUMAN_READABLE_LABELS = {
    # Passport fields
    "given_names": "Name",
    "surnames": "Surname",
    "date_of_birth": "Date of Birth",
    "passport_number": "Passport Number",
    "date_of_issue": "Date of Issue",
    "date_of_expiry": "Date of Expiry",
    # Driver's license fields
    "first_name": "First Name",
    "last_name": "Last Name",
    "document_id": "License Number",
    "issued_date": "Issued Date",
    "expiry_date": "Expiry Date",
    "country_code": "Country",
    "category": "Category",
}


def make_human_readable(data: dict[str, Any]) -> dict[str, str]:
    """Relabel validated raw keys with human-readable names."""
    return {HUMAN_READABLE_LABELS.get(key, key): str(value) for key, value in data.items()}


class MindeeClient:
    """
    HTTP client for the Mindee v2 inference API.

    One extract() call enqueues an inference for a document URL, polls the
    job and returns the validated, relabelled fields.
    """

    _instance: Optional["MindeeClient"] = None

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
    ):
        """Initialize client.

        Args:
            api_key: Mindee API key (defaults to settings)
            base_url: Mindee API base URL (defaults to settings)
            timeout: Request timeout in seconds
        """
        settings = get_settings()
        self.api_key = api_key or settings.mindee_api_key
        self.base_url = base_url or settings.mindee_base_url
        self.timeout = timeout
        self.model_ids = {
            DocumentKind.PASSPORT: settings.mindee_passport_model_id,
            DocumentKind.DRIVERS_LICENSE: settings.mindee_drivers_license_model_id,
        }
        self.poll_interval = settings.mindee_poll_interval
        self.max_polls = settings.mindee_max_polls
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def get_instance(cls) -> "MindeeClient":
        """Get singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset singleton instance (useful for testing)."""
        cls._instance = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"Authorization": self.api_key},
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def extract(self, file_url: str, kind: DocumentKind) -> dict[str, str]:
        """
        Extract structured fields from a document.

        Args:
            file_url: Downloadable URL of the document image/PDF
            kind: Which document the file is expected to be

        Returns:
            Human-readable field name -> value

        Raises:
            ExtractionError: On HTTP failure, failed job, or fields that
                don't match the document schema
        """
        try:
            job_id = await self._enqueue(file_url, kind)
            inference = await self._wait_for_inference(job_id)
        except httpx.HTTPError as e:
            raise ExtractionError(f"Mindee request failed: {e}") from e

        raw = self._flatten_fields(inference)

        try:
            validated = SCHEMAS[kind].model_validate(raw)
        except ValidationError as e:
            raise ExtractionError(f"Unexpected {kind.value} fields: {e}") from e

        logger.info(f"Extracted {kind.value} data ({len(raw)} fields)")
        return make_human_readable(validated.model_dump())

    async def _enqueue(self, file_url: str, kind: DocumentKind) -> str:
        """Start an inference job and return its id."""
        client = await self._get_client()

        response = await client.post(
            "/v2/inferences/enqueue",
            data={
                "model_id": self.model_ids[kind],
                "url": file_url,
                "rag": "false",
                "raw_text": "false",
                "polygon": "false",
                "confidence": "false",
            },
        )
        response.raise_for_status()

        job_id = (response.json().get("job") or {}).get("id")
        if not job_id:
            raise ExtractionError("Mindee enqueue response has no job id")
        return job_id

    async def _wait_for_inference(self, job_id: str) -> dict:
        """Poll the job until processed and return the inference body."""
        client = await self._get_client()

        for _ in range(self.max_polls):
            await asyncio.sleep(self.poll_interval)

            response = await client.get(f"/v2/jobs/{job_id}")
            response.raise_for_status()
            data = response.json()

            # Redirects are followed, so a finished job may land on the inference
            if "inference" in data:
                return data["inference"]

            job = data.get("job") or {}
            status = job.get("status")

            if status == "Failed":
                raise ExtractionError(f"Mindee job failed: {job.get('error')}")

            if status == "Processed" and job.get("result_url"):
                result = await client.get(job["result_url"])
                result.raise_for_status()
                inference = result.json().get("inference")
                if not inference:
                    raise ExtractionError("Mindee result has no inference")
                return inference

        raise ExtractionError(f"Mindee job {job_id} not processed after {self.max_polls} polls")

    def _flatten_fields(self, inference: dict) -> dict[str, Any]:
        """
        Reduce Mindee field objects to plain values.

        Simple fields carry {"value": ...}; list fields carry
        {"items": [{"value": ...}, ...]} and are joined with spaces.
        """
        fields = (inference.get("result") or {}).get("fields")
        if not isinstance(fields, dict):
            raise ExtractionError("Mindee inference has no fields")

        flat: dict[str, Any] = {}
        for name, field in fields.items():
            if not isinstance(field, dict):
                continue
            if "items" in field:
                values = [
                    str(item.get("value"))
                    for item in field["items"]
                    if isinstance(item, dict) and item.get("value") is not None
                ]
                flat[name] = " ".join(values) if values else None
            else:
                flat[name] = field.get("value")
        return flat


# Singleton accessor
def get_mindee_client() -> MindeeClient:
    """Get Mindee client singleton instance."""
    return MindeeClient.get_instance()
