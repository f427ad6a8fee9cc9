# src/clients/workflow_client.py - v1
"""Hosted AI workflow clients over HTTP (httpx).

Each workflow is addressed as ``{base_url}/{workflow_id}`` and answers
with ``{"outputs": {"out-0": ..., "out-1": ...}}``. String outputs are
decoded as JSON when they parse; anything else is passed through as-is.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any

import httpx

from assessflow.clients.base_client import BaseAnalysisClient, BaseCompanyClient
from assessflow.config.phases import (
    COMPANY_WORKFLOW_BOTH,
    COMPANY_WORKFLOW_FILE,
    COMPANY_WORKFLOW_URL,
)
from assessflow.core.errors import InvalidInputError, RemoteCallError
from assessflow.core.models import AnalysisInput, CompanyResult

if TYPE_CHECKING:
    from assessflow.pipeline.cancellation import CancellationToken

logger = logging.getLogger(__name__)

MIN_DESCRIPTION_CHARS = 20
MAX_ERROR_BODY_CHARS = 200


class WorkflowTransport:
    """Shared HTTP transport for all workflow calls.

    Args:
        base_url: Workflow API base URL.
        api_key: Bearer token for the workflow API.
        workflow_ids: Workflow name -> hosted workflow id.
        http_client: Optional preconfigured AsyncClient (tests inject a
            MockTransport here).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        workflow_ids: dict[str, str],
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._workflow_ids = dict(workflow_ids)
        self._client = http_client or httpx.AsyncClient()

    async def call(
        self,
        workflow: str,
        payload: dict[str, Any],
        timeout_s: float,
        cancel_token: CancellationToken,
        phase: str,
        files: dict[str, tuple[str, bytes, str]] | None = None,
    ) -> dict[str, Any]:
        """POST to a workflow and return its decoded JSON body.

        Raises:
            RemoteCallError: Unknown workflow, transport failure, timeout,
                non-2xx status, non-JSON body, or cancellation.
        """
        workflow_id = self._workflow_ids.get(workflow)
        if not workflow_id:
            raise RemoteCallError(f"Unknown workflow: {workflow}", phase=phase)

        url = f"{self._base_url}/{workflow_id}"
        headers = {"Authorization": f"Bearer {self._api_key}"}
        logger.debug("Calling workflow %s", workflow)
        started = time.monotonic()

        if files:
            request = self._client.post(
                url, data=payload, files=files, headers=headers, timeout=timeout_s
            )
        else:
            request = self._client.post(
                url, json=payload, headers=headers, timeout=timeout_s
            )

        try:
            response = await cancel_token.guard(request, phase=phase)
        except httpx.TimeoutException as e:
            raise RemoteCallError(
                f"{phase} analysis timed out after {timeout_s:.0f}s", phase=phase
            ) from e
        except httpx.HTTPError as e:
            raise RemoteCallError(f"{phase} request failed: {e}", phase=phase) from e

        elapsed = time.monotonic() - started
        if response.is_error:
            logger.error(
                "Workflow %s failed (%.1fs): %d", workflow, elapsed, response.status_code
            )
            raise RemoteCallError(
                f"API error {response.status_code}: "
                f"{response.text[:MAX_ERROR_BODY_CHARS]}",
                phase=phase,
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise RemoteCallError(
                f"{phase} returned a non-JSON response", phase=phase
            ) from e

        logger.info("Workflow %s completed (%.1fs)", workflow, elapsed)
        return body if isinstance(body, dict) else {}

    async def aclose(self) -> None:
        await self._client.aclose()


class CompanyWorkflowClient(BaseCompanyClient):
    """Gating client: picks the URL, file or combined company workflow."""

    def __init__(self, transport: WorkflowTransport, timeout_s: float = 600.0) -> None:
        self._transport = transport
        self._timeout_s = timeout_s

    async def analyze(
        self, analysis_input: AnalysisInput, cancel_token: CancellationToken
    ) -> CompanyResult:
        if not analysis_input.has_url and not analysis_input.has_document:
            raise InvalidInputError("Either a company URL or document is required")

        user_id = f"company_{int(time.time() * 1000)}"
        files = None
        payload: dict[str, Any] = {"user_id": user_id}

        if analysis_input.document is not None:
            doc = analysis_input.document
            files = {"doc-0": (doc.file_name, doc.content, doc.mime_type)}
            workflow = (
                COMPANY_WORKFLOW_BOTH if analysis_input.has_url else COMPANY_WORKFLOW_FILE
            )
            if analysis_input.has_url:
                payload["in-0"] = analysis_input.url.strip()  # type: ignore[union-attr]
        else:
            workflow = COMPANY_WORKFLOW_URL
            payload["in-0"] = analysis_input.url.strip()  # type: ignore[union-attr]

        logger.info("Using company workflow: %s", workflow)
        body = await self._transport.call(
            workflow, payload, self._timeout_s, cancel_token, phase="company", files=files
        )
        return _company_result(body.get("outputs") or {})


class DimensionWorkflowClient(BaseAnalysisClient):
    """Cohort client: sends the short description to one dimension workflow."""

    def __init__(
        self,
        dimension: str,
        transport: WorkflowTransport,
        timeout_s: float = 600.0,
    ) -> None:
        self._dimension = dimension
        self._transport = transport
        self._timeout_s = timeout_s

    @property
    def dimension(self) -> str:
        return self._dimension

    async def analyze(self, description: str, cancel_token: CancellationToken) -> Any:
        if not description or len(description.strip()) < MIN_DESCRIPTION_CHARS:
            raise RemoteCallError(
                f"Company description too short for {self._dimension} analysis",
                phase=self._dimension,
            )

        payload = {
            "user_id": f"{self._dimension}_{int(time.time() * 1000)}",
            "in-0": description.strip(),
        }
        body = await self._transport.call(
            self._dimension, payload, self._timeout_s, cancel_token, phase=self._dimension
        )
        outputs = body.get("outputs") or {}
        if not outputs:
            raise RemoteCallError(
                f"{self._dimension} API did not return any outputs",
                phase=self._dimension,
            )
        return {key: decode_output(value) for key, value in outputs.items()}


def decode_output(value: Any) -> Any:
    """Decode a JSON string output; leave other values untouched."""
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


def _company_result(outputs: dict[str, Any]) -> CompanyResult:
    raw = outputs.get("out-0") or outputs.get("out-6")
    if raw is None and not outputs.get("out-7"):
        raise RemoteCallError(
            "Company API did not return expected outputs", phase="company"
        )

    full = decode_output(raw) if raw is not None else {}
    if not isinstance(full, dict):
        raise RemoteCallError("Failed to parse company data", phase="company")

    overview = full.get("company_overview")
    short = overview.get("downstream_summary") if isinstance(overview, dict) else None
    if not short:
        legacy = outputs.get("out-7")
        short = legacy if isinstance(legacy, str) else ""

    return CompanyResult(full=full, short=short.strip())
