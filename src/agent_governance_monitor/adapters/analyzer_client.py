"""LLM gateway client implementing the semantic analyzer contract.

The gateway exposes a single structured-invocation endpoint:

    POST {analyzer_url}/v1/invoke
    {"prompt": "...", "response_json_schema": {...}}
    → 200 {"result": {...}}

The client uses httpx for async HTTP and enforces a hard timeout per call
(GOVMON_ANALYZER_TIMEOUT_SECONDS). A timed-out or failed call raises
AnalyzerFailureError; there are no retries, the run fails instead.
"""

from typing import Any

import httpx

from agent_governance_monitor.errors import AnalyzerFailureError
from agent_governance_monitor.observability import get_logger

logger = get_logger(__name__)

_DEFAULT_ANALYZER_URL = "http://localhost:8400"

_DEFAULT_TIMEOUT_SECONDS = 60.0


class HttpSemanticAnalyzer:
    """Async client for the LLM gateway.

    Args:
        analyzer_url: Gateway base URL.
        api_key: Optional bearer token.
        timeout_seconds: Hard timeout for one analysis call.
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        analyzer_url: str = _DEFAULT_ANALYZER_URL,
        api_key: str = "",
        timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._analyzer_url = analyzer_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._transport = transport
        self._headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, headers=self._headers, transport=self._transport)

    async def analyze(self, prompt: str, response_schema: dict[str, Any]) -> dict[str, Any]:
        """Run one structured analysis.

        Args:
            prompt: Corpus and policy context rendered as a prompt.
            response_schema: JSON schema the result must follow.

        Returns:
            The gateway's `result` object.

        Raises:
            AnalyzerFailureError: On timeout, transport error, non-200 status,
                or a response without a `result` object.
        """
        url = f"{self._analyzer_url}/v1/invoke"
        logger.debug(
            "Invoking semantic analyzer",
            analyzer_url=url,
            prompt_length=len(prompt),
            timeout_seconds=self._timeout_seconds,
        )

        try:
            async with self._client(self._timeout_seconds) as client:
                response = await client.post(
                    url,
                    json={"prompt": prompt, "response_json_schema": response_schema},
                )
        except httpx.TimeoutException:
            logger.warning("Semantic analyzer timed out", timeout_seconds=self._timeout_seconds)
            raise AnalyzerFailureError(f"Analyzer timed out after {self._timeout_seconds}s")
        except httpx.RequestError as exc:
            logger.error("Semantic analyzer request failed", analyzer_url=url, error=str(exc))
            raise AnalyzerFailureError(f"Analyzer request error: {exc}")

        if response.status_code != 200:
            logger.error(
                "Semantic analyzer returned unexpected status",
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise AnalyzerFailureError(
                f"Analyzer failed with status {response.status_code}: {response.text[:200]}"
            )

        try:
            result = response.json().get("result")
        except ValueError:
            raise AnalyzerFailureError("Analyzer returned a non-JSON response")
        if not isinstance(result, dict):
            raise AnalyzerFailureError("Analyzer response has no result object")

        logger.debug("Semantic analysis complete", result_keys=sorted(result))
        return result

    async def health_check(self) -> bool:
        """Check whether the gateway is reachable.

        Returns:
            True if GET /health answers 200, False otherwise.
        """
        url = f"{self._analyzer_url}/health"
        try:
            async with self._client(3.0) as client:
                response = await client.get(url)
        except httpx.RequestError:
            logger.warning("Analyzer health check failed, gateway not reachable", analyzer_url=url)
            return False
        healthy = response.status_code == 200
        logger.debug("Analyzer health check", analyzer_url=url, healthy=healthy)
        return healthy
