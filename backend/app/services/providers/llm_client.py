"""
Async client for an OpenAI-compatible chat-completions gateway.

Both providers are reached through one gateway; the model name carries the
provider (e.g. "google/gemini-2.5-flash", "openai/gpt-5-mini"). Failures are
raised as provider errors so that the orchestrator can classify them:
- timeouts                       -> ProviderTimeoutError
- HTTP error status / transport  -> ProviderResponseError / ProviderCallError
- unparsable or invalid output   -> SchemaValidationError

Environment configuration:
- LLM_API_BASE: Base URL for API (default: https://api.openai.com/v1)
- LLM_API_KEY: API key / bearer token
- LLM_TIMEOUT_SECONDS: Request timeout in seconds (default: 30.0)

Prompt and completion text are never logged.
"""
import json
import os
import time
from typing import Any, Callable, Dict, List, Optional

import httpx
from pydantic import ValidationError

from app.core.logging import get_logger
from app.services.providers.errors import (
    ProviderCallError,
    ProviderResponseError,
    ProviderTimeoutError,
    SchemaValidationError,
)

logger = get_logger(__name__)


def _strip_code_fence(content: str) -> str:
    text = content.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


class GatewayClient:
    """Async HTTP client for gateway chat completions."""

    def __init__(
        self,
        api_base: str,
        api_key: Optional[str],
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def _post(self, path: str, json_payload: Dict[str, Any]) -> httpx.Response:
        headers = {
            "Content-Type": "application/json",
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        url = f"{self.api_base}{path}"
        async with httpx.AsyncClient(
            timeout=self.timeout_seconds,
            transport=self._transport,
        ) as client:
            return await client.post(url, headers=headers, json=json_payload)

    async def chat(
        self,
        provider: str,
        model: str,
        messages: List[Dict[str, str]],
        max_tokens: Optional[int] = None,
        temperature: float = 0.7,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Call the chat completion endpoint.

        Returns:
            Raw JSON response from the gateway.
        """
        if not self.api_key:
            raise ProviderCallError("LLM API key not configured", provider=provider)

        payload: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if response_format:
            payload["response_format"] = response_format

        start = time.time()
        try:
            response = await self._post("/chat/completions", json_payload=payload)
        except httpx.TimeoutException as exc:
            logger.warning(
                "llm_timeout",
                provider=provider,
                model=model,
                error_type=type(exc).__name__,
            )
            raise ProviderTimeoutError(f"{provider} request timed out", provider=provider) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "llm_http_error",
                provider=provider,
                model=model,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise ProviderCallError(f"{provider} request failed", provider=provider) from exc
        finally:
            duration_ms = (time.time() - start) * 1000.0
            logger.debug("llm_request_finished", provider=provider, model=model, duration_ms=duration_ms)

        if response.status_code >= 400:
            logger.warning(
                "llm_error_status",
                provider=provider,
                model=model,
                status_code=response.status_code,
            )
            raise ProviderResponseError(
                f"{provider} returned HTTP {response.status_code}",
                status_code=response.status_code,
                provider=provider,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise SchemaValidationError(
                f"{provider} returned a non-JSON body",
                provider=provider,
            ) from exc

    async def generate_json(
        self,
        provider: str,
        model: str,
        messages: List[Dict[str, str]],
        validator: Optional[Callable[[Any], Any]] = None,
        **kwargs: Any,
    ) -> Any:
        """
        Chat completion whose message content must be JSON.

        Args:
            validator: Optional callable applied to the parsed JSON (e.g. a
                pydantic model's model_validate). ValidationError or ValueError
                raised by it count as schema failures.

        Raises:
            SchemaValidationError if the content is not JSON or fails validation.
        """
        response = await self.chat(provider, model, messages, **kwargs)

        try:
            content = response["choices"][0]["message"]["content"]
            parsed = json.loads(_strip_code_fence(content))
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            logger.warning("llm_invalid_json", provider=provider, model=model)
            raise SchemaValidationError(
                f"{provider} returned invalid JSON content",
                provider=provider,
            ) from exc

        if validator is None:
            return parsed

        try:
            return validator(parsed)
        except (ValidationError, ValueError) as exc:
            logger.warning(
                "llm_schema_invalid",
                provider=provider,
                model=model,
                error_type=type(exc).__name__,
            )
            raise SchemaValidationError(
                f"{provider} output failed schema validation",
                provider=provider,
            ) from exc


_gateway_client: Optional[GatewayClient] = None


def get_gateway_client() -> GatewayClient:
    """Global gateway client configured from the environment."""
    global _gateway_client
    if _gateway_client is None:
        api_base = os.getenv("LLM_API_BASE", "https://api.openai.com/v1")
        api_key = os.getenv("LLM_API_KEY")  # May be None (treated as disabled)
        timeout = float(os.getenv("LLM_TIMEOUT_SECONDS", "30.0") or "30.0")

        _gateway_client = GatewayClient(
            api_base=api_base,
            api_key=api_key,
            timeout_seconds=timeout,
        )

    return _gateway_client
