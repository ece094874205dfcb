"""Google Gemini integration client for text, image and speech generation.

Features:
- Async HTTP client using httpx against the REST `generateContent` endpoint
- Circuit breaker for fault tolerance
- Retry logic with exponential backoff
- Handles timeouts, rate limits (429), auth failures (401/403)
- Never logs the API key
- Token usage logging for quota tracking

ERROR LOGGING REQUIREMENTS:
- Log all outbound API calls with model, operation, timing
- Log request/response bodies at DEBUG level (truncated)
- Log and handle: timeouts, rate limits (429), auth failures (401/403)
- Include retry attempt number in logs
"""

import asyncio
import base64
import binascii
import time
from dataclasses import dataclass
from typing import Any

import httpx

from tubeflow.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from tubeflow.core.config import get_settings
from tubeflow.core.logging import gemini_logger, get_logger

logger = get_logger(__name__)

API_VERSION = "v1beta"


@dataclass
class GeminiResult:
    """Result of one generateContent request.

    `text` is filled for text generation, `data`/`mime_type` for image and
    speech generation.
    """

    success: bool
    text: str | None = None
    data: bytes | None = None
    mime_type: str | None = None
    error: str | None = None
    status_code: int | None = None
    prompt_tokens: int | None = None
    output_tokens: int | None = None
    duration_ms: float = 0.0


class GeminiClient:
    """Async client for the Gemini API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        text_model: str | None = None,
        image_model: str | None = None,
        tts_model: str | None = None,
        tts_voice: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize Gemini client.

        Args:
            api_key: Gemini API key. Defaults to settings.
            base_url: REST base URL. Defaults to settings.
            text_model / image_model / tts_model: Model names. Default to settings.
            tts_voice: Prebuilt voice for speech. Defaults to settings.
            timeout: Request timeout in seconds. Defaults to settings.
            max_retries: Maximum attempts per request. Defaults to settings.
            retry_delay: Base delay between retries. Defaults to settings.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        settings = get_settings()

        self._api_key = api_key or settings.gemini_api_key
        self._base_url = (base_url or settings.gemini_api_url).rstrip("/")
        self._text_model = text_model or settings.gemini_text_model
        self._image_model = image_model or settings.gemini_image_model
        self._tts_model = tts_model or settings.gemini_tts_model
        self._tts_voice = tts_voice or settings.gemini_tts_voice
        self._timeout = timeout or settings.gemini_timeout
        self._max_retries = max_retries or settings.gemini_max_retries
        self._retry_delay = (
            retry_delay if retry_delay is not None else settings.gemini_retry_delay
        )
        self._transport = transport

        self._circuit_breaker = CircuitBreaker(
            CircuitBreakerConfig(
                failure_threshold=settings.gemini_circuit_failure_threshold,
                recovery_timeout=settings.gemini_circuit_recovery_timeout,
            ),
            name="gemini",
        )

        self._client: httpx.AsyncClient | None = None
        self._available = bool(self._api_key)

    @property
    def available(self) -> bool:
        """Check if Gemini is configured."""
        return self._available

    @property
    def text_model(self) -> str:
        return self._text_model

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
            if self._api_key:
                headers["x-goog-api-key"] = self._api_key
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
        logger.info("Gemini client closed")

    async def generate_text(self, prompt: str, use_search: bool = False) -> GeminiResult:
        """Generate text, optionally grounded with Google Search."""
        body: dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
        if use_search:
            body["tools"] = [{"google_search": {}}]
        result = await self._generate(self._text_model, body, "generate_text", prompt)
        if result.success:
            result.text = _extract_text(result.raw)
            gemini_logger.response_body(self._text_model, result.text, result.duration_ms)
            if not result.text:
                return GeminiResult(
                    success=False,
                    error="Empty text in Gemini response",
                    duration_ms=result.duration_ms,
                )
        return result.public()

    async def generate_image(self, prompt: str) -> GeminiResult:
        """Generate one image; `data` holds the decoded image bytes."""
        body: dict[str, Any] = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
        }
        result = await self._generate(self._image_model, body, "generate_image", prompt)
        return _with_inline_data(result, "image").public()

    async def generate_speech(self, text: str) -> GeminiResult:
        """Synthesize speech; `data` holds raw 16-bit PCM samples."""
        body: dict[str, Any] = {
            "contents": [{"parts": [{"text": text}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {
                        "prebuiltVoiceConfig": {"voiceName": self._tts_voice}
                    }
                },
            },
        }
        result = await self._generate(self._tts_model, body, "generate_speech", text)
        return _with_inline_data(result, "audio").public()

    async def _generate(
        self,
        model: str,
        body: dict[str, Any],
        operation: str,
        prompt: str,
    ) -> "_RawResult":
        """POST generateContent with retries and the circuit breaker."""
        if not self._available:
            return _RawResult(success=False, error="Gemini not configured (missing API key)")

        if not await self._circuit_breaker.can_execute():
            gemini_logger.circuit_blocked(operation)
            return _RawResult(success=False, error="Circuit breaker is open")

        client = await self._get_client()
        path = f"/{API_VERSION}/models/{model}:generateContent"
        start_time = time.monotonic()
        last_error = "Request failed after all retries"
        last_status: int | None = None

        for attempt in range(self._max_retries):
            attempt_start = time.monotonic()
            gemini_logger.api_call_start(model, operation, len(prompt), retry_attempt=attempt)
            gemini_logger.request_body(model, prompt)

            try:
                response = await client.post(path, json=body)
            except httpx.TimeoutException:
                gemini_logger.timeout(model, self._timeout)
                await self._circuit_breaker.record_failure()
                last_error, last_status = "Request timed out", None
                if await self._backoff(attempt, operation, None):
                    continue
                break
            except httpx.HTTPError as e:
                duration_ms = (time.monotonic() - attempt_start) * 1000
                gemini_logger.api_call_error(
                    model, operation, duration_ms, None, str(e), type(e).__name__, attempt
                )
                await self._circuit_breaker.record_failure()
                last_error, last_status = f"Request failed: {e}", None
                if await self._backoff(attempt, operation, None):
                    continue
                break

            duration_ms = (time.monotonic() - attempt_start) * 1000
            status_code = response.status_code

            if status_code == 429:
                retry_after_str = response.headers.get("retry-after")
                retry_after = float(retry_after_str) if retry_after_str else None
                gemini_logger.rate_limit(model, retry_after=retry_after)
                await self._circuit_breaker.record_failure()
                last_error, last_status = "Rate limit exceeded", 429
                if attempt < self._max_retries - 1:
                    if retry_after is not None and retry_after <= 60:
                        await asyncio.sleep(retry_after)
                        continue
                    if await self._backoff(attempt, operation, 429):
                        continue
                break

            if status_code in (401, 403):
                gemini_logger.auth_failure(status_code)
                await self._circuit_breaker.record_failure()
                return _RawResult(
                    success=False,
                    error=f"Authentication failed ({status_code})",
                    status_code=status_code,
                    duration_ms=duration_ms,
                )

            if status_code >= 500:
                error_msg = f"Server error ({status_code})"
                gemini_logger.api_call_error(
                    model, operation, duration_ms, status_code, error_msg, "ServerError", attempt
                )
                await self._circuit_breaker.record_failure()
                last_error, last_status = error_msg, status_code
                if await self._backoff(attempt, operation, status_code):
                    continue
                break

            if status_code >= 400:
                error_msg = _error_message(response)
                gemini_logger.api_call_error(
                    model, operation, duration_ms, status_code, error_msg, "ClientError", attempt
                )
                return _RawResult(
                    success=False,
                    error=f"Client error ({status_code}): {error_msg}",
                    status_code=status_code,
                    duration_ms=duration_ms,
                )

            try:
                data = response.json()
            except ValueError:
                await self._circuit_breaker.record_failure()
                return _RawResult(
                    success=False,
                    error="Invalid JSON in Gemini response",
                    status_code=status_code,
                    duration_ms=duration_ms,
                )

            usage = data.get("usageMetadata", {})
            await self._circuit_breaker.record_success()
            gemini_logger.api_call_success(
                model,
                operation,
                duration_ms,
                prompt_tokens=usage.get("promptTokenCount"),
                output_tokens=usage.get("candidatesTokenCount"),
            )
            return _RawResult(
                success=True,
                raw=data,
                status_code=status_code,
                prompt_tokens=usage.get("promptTokenCount"),
                output_tokens=usage.get("candidatesTokenCount"),
                duration_ms=(time.monotonic() - start_time) * 1000,
            )

        return _RawResult(
            success=False,
            error=last_error,
            status_code=last_status,
            duration_ms=(time.monotonic() - start_time) * 1000,
        )

    async def _backoff(self, attempt: int, operation: str, status_code: int | None) -> bool:
        """Sleep before the next attempt; False when no attempts are left."""
        if attempt >= self._max_retries - 1:
            return False
        delay = self._retry_delay * (2**attempt)
        logger.warning(
            f"Gemini {operation} attempt {attempt + 1} failed, retrying in {delay}s",
            extra={
                "attempt": attempt + 1,
                "max_retries": self._max_retries,
                "delay_seconds": delay,
                "status_code": status_code,
            },
        )
        await asyncio.sleep(delay)
        return True


@dataclass
class _RawResult(GeminiResult):
    raw: dict[str, Any] | None = None

    def public(self) -> GeminiResult:
        return GeminiResult(
            success=self.success,
            text=self.text,
            data=self.data,
            mime_type=self.mime_type,
            error=self.error,
            status_code=self.status_code,
            prompt_tokens=self.prompt_tokens,
            output_tokens=self.output_tokens,
            duration_ms=self.duration_ms,
        )


def _parts(raw: dict[str, Any] | None) -> list[dict[str, Any]]:
    candidates = (raw or {}).get("candidates") or []
    if not candidates:
        return []
    return (candidates[0].get("content") or {}).get("parts") or []


def _extract_text(raw: dict[str, Any] | None) -> str:
    """Concatenate the text parts of the first candidate."""
    return "".join(part.get("text", "") for part in _parts(raw) if "text" in part).strip()


def _with_inline_data(result: _RawResult, kind: str) -> _RawResult:
    """Decode the first inline-data part of a successful result."""
    if not result.success:
        return result
    for part in _parts(result.raw):
        inline = part.get("inlineData") or part.get("inline_data")
        if inline and inline.get("data"):
            try:
                result.data = base64.b64decode(inline["data"])
            except (binascii.Error, ValueError):
                break
            result.mime_type = inline.get("mimeType") or inline.get("mime_type")
            return result
    return _RawResult(
        success=False,
        error=f"Could not extract {kind} data from Gemini response",
        status_code=result.status_code,
        duration_ms=result.duration_ms,
    )


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or "Client error"
    if isinstance(body, dict):
        return str(body.get("error", {}).get("message", body))
    return str(body)


# Global Gemini client instance
gemini_client: GeminiClient | None = None


async def init_gemini() -> GeminiClient:
    """Initialize the global Gemini client."""
    global gemini_client
    if gemini_client is None:
        gemini_client = GeminiClient()
        if gemini_client.available:
            logger.info(
                "Gemini client initialized",
                extra={"model": gemini_client.text_model},
            )
        else:
            logger.warning("Gemini not configured (missing API key)")
    return gemini_client


async def close_gemini() -> None:
    """Close the global Gemini client."""
    global gemini_client
    if gemini_client:
        await gemini_client.close()
        gemini_client = None


async def get_gemini() -> GeminiClient:
    """Dependency for getting the Gemini client."""
    if gemini_client is None:
        await init_gemini()
    return gemini_client  # type: ignore[return-value]
