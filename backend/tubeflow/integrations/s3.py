"""S3-compatible object storage client with circuit breaker.

Features:
- Boto3-based client; any S3-compatible endpoint via endpoint_url
  (DigitalOcean Spaces by default, LocalStack/MinIO in development)
- Circuit breaker for fault tolerance
- Retry logic with exponential backoff
- Blocking boto3 calls run in the default executor

ERROR LOGGING REQUIREMENTS:
- Log all S3 operations with key, method, timing
- Log and handle: timeouts, auth failures, connection errors
- Include retry attempt number in logs
- Never log access keys
"""

import asyncio
import time
from collections.abc import Callable
from typing import Any
from urllib.parse import urlparse

import boto3
from botocore.config import Config as BotoConfig  # type: ignore[import-not-found]
from botocore.exceptions import (  # type: ignore[import-not-found]
    BotoCoreError,
    ClientError,
    ConnectionError,
    EndpointConnectionError,
)

from tubeflow.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from tubeflow.core.config import get_settings
from tubeflow.core.logging import get_logger

logger = get_logger(__name__)

AUTH_ERROR_CODES = ("AccessDenied", "InvalidAccessKeyId", "SignatureDoesNotMatch")


class S3Error(Exception):
    """Base exception for S3 errors."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.key = key


class S3ConfigError(S3Error):
    """Raised at startup when storage settings are inconsistent."""

    pass


class S3ConnectionError(S3Error):
    """Raised when connection to S3 fails."""

    pass


class S3AuthError(S3Error):
    """Raised when S3 authentication fails."""

    pass


class S3NotFoundError(S3Error):
    """Raised when an object or the bucket does not exist."""

    pass


class S3CircuitOpenError(S3Error):
    """Raised when circuit breaker is open."""

    pass


class S3Client:
    """Client for S3-compatible object storage."""

    def __init__(
        self,
        bucket: str | None = None,
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        region: str | None = None,
        public_base_url: str | None = None,
        object_acl: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
    ) -> None:
        settings = get_settings()

        self._bucket = bucket or settings.s3_bucket
        self._endpoint_url = endpoint_url or settings.s3_endpoint_url
        self._access_key = access_key or settings.s3_access_key
        self._secret_key = secret_key or settings.s3_secret_key
        self._region = region or settings.s3_region
        self._public_base_url = public_base_url or settings.s3_public_base_url
        self._object_acl = object_acl if object_acl is not None else settings.s3_object_acl
        self._timeout = timeout or settings.s3_timeout
        self._max_retries = max_retries or settings.s3_max_retries
        self._retry_delay = retry_delay if retry_delay is not None else settings.s3_retry_delay

        self._circuit_breaker = CircuitBreaker(
            CircuitBreakerConfig(
                failure_threshold=settings.s3_circuit_failure_threshold,
                recovery_timeout=settings.s3_circuit_recovery_timeout,
            ),
            name="s3",
        )

        self._client: Any = None
        self._available = bool(self._bucket and self._access_key and self._secret_key)

    @property
    def available(self) -> bool:
        """Check if S3 is configured."""
        return self._available

    @property
    def bucket(self) -> str | None:
        return self._bucket

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    def validate_config(self) -> None:
        """Fail fast on half-configured storage.

        An entirely unset bucket is allowed (uploads then fail at call time);
        a bucket without credentials, or a malformed endpoint, is not.

        Raises:
            S3ConfigError: If the settings cannot work
        """
        if self._bucket and not (self._access_key and self._secret_key):
            raise S3ConfigError(
                "S3 bucket configured without access key and secret key",
                operation="validate_config",
            )
        if self._endpoint_url:
            parsed = urlparse(self._endpoint_url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise S3ConfigError(
                    f"Invalid S3 endpoint URL: {self._endpoint_url}",
                    operation="validate_config",
                )

    def public_url(self, key: str) -> str:
        """Public HTTP URL of an object.

        Uses s3_public_base_url when set, otherwise
        <endpoint>/<bucket>/<key> (path-style).
        """
        if self._public_base_url:
            return f"{self._public_base_url.rstrip('/')}/{key}"
        endpoint = (self._endpoint_url or f"https://s3.{self._region}.amazonaws.com").rstrip("/")
        return f"{endpoint}/{self._bucket}/{key}"

    def key_from_url(self, url: str) -> str | None:
        """Recover the object key from a URL produced by public_url()."""
        if self._public_base_url:
            prefix = self._public_base_url.rstrip("/") + "/"
            if url.startswith(prefix):
                return url[len(prefix):] or None
        marker = f"{self._bucket}/"
        path = urlparse(url).path.lstrip("/")
        if self._bucket and path.startswith(marker):
            return path[len(marker):] or None
        # Virtual-host style URL: bucket is part of the host name
        return path or None

    def _get_client(self) -> Any:
        """Get or create the boto3 client."""
        if self._client is None:
            boto_config = BotoConfig(
                connect_timeout=self._timeout,
                read_timeout=self._timeout,
                retries={"max_attempts": 0},  # We handle retries ourselves
            )
            client_kwargs: dict[str, Any] = {
                "service_name": "s3",
                "aws_access_key_id": self._access_key,
                "aws_secret_access_key": self._secret_key,
                "region_name": self._region,
                "config": boto_config,
            }
            if self._endpoint_url:
                client_kwargs["endpoint_url"] = self._endpoint_url
            self._client = boto3.client(**client_kwargs)
        return self._client

    def _log_operation_error(
        self,
        operation: str,
        duration_ms: float,
        error: str,
        error_type: str,
        key: str | None,
        retry_attempt: int,
    ) -> None:
        logger.error(
            f"S3 {operation} failed: {error}",
            extra={
                "s3_operation": operation,
                "s3_key": key,
                "s3_bucket": self._bucket,
                "duration_ms": round(duration_ms, 2),
                "error": error,
                "error_type": error_type,
                "retry_attempt": retry_attempt,
            },
        )

    async def _execute_with_retry(
        self,
        operation: str,
        func: Callable[[], Any],
        key: str | None = None,
    ) -> Any:
        """Run a blocking boto3 call with retries and the circuit breaker.

        Raises:
            S3CircuitOpenError: If circuit breaker is open
            S3AuthError: If authentication fails
            S3NotFoundError: If the object or bucket does not exist
            S3Error: For other errors once retries are exhausted
        """
        if not self._available:
            raise S3Error(
                "S3 not configured (missing bucket, access_key, or secret_key)",
                operation=operation,
                key=key,
            )

        if not await self._circuit_breaker.can_execute():
            logger.warning(
                f"S3 {operation} blocked by circuit breaker",
                extra={"s3_operation": operation, "s3_key": key},
            )
            raise S3CircuitOpenError("Circuit breaker is open", operation=operation, key=key)

        last_error: S3Error | None = None
        loop = asyncio.get_running_loop()

        for attempt in range(self._max_retries):
            start_time = time.monotonic()
            logger.debug(
                f"S3 {operation} started",
                extra={"s3_operation": operation, "s3_key": key, "retry_attempt": attempt},
            )
            try:
                result = await loop.run_in_executor(None, func)
                duration_ms = (time.monotonic() - start_time) * 1000
                logger.info(
                    f"S3 {operation} completed",
                    extra={
                        "s3_operation": operation,
                        "s3_key": key,
                        "s3_bucket": self._bucket,
                        "duration_ms": round(duration_ms, 2),
                    },
                )
                await self._circuit_breaker.record_success()
                return result

            except ClientError as e:
                duration_ms = (time.monotonic() - start_time) * 1000
                error_code = e.response.get("Error", {}).get("Code", "Unknown")
                error_message = e.response.get("Error", {}).get("Message", str(e))
                self._log_operation_error(
                    operation, duration_ms, error_message, f"ClientError:{error_code}", key, attempt
                )

                if error_code in AUTH_ERROR_CODES:
                    await self._circuit_breaker.record_failure()
                    raise S3AuthError(
                        f"Authentication failed: {error_message}", operation=operation, key=key
                    ) from e
                if error_code in ("NoSuchKey", "NoSuchBucket", "404"):
                    raise S3NotFoundError(
                        f"Not found ({error_code}): {key or self._bucket}",
                        operation=operation,
                        key=key,
                    ) from e

                await self._circuit_breaker.record_failure()
                last_error = S3Error(
                    f"S3 error ({error_code}): {error_message}", operation=operation, key=key
                )

            except (EndpointConnectionError, ConnectionError) as e:
                duration_ms = (time.monotonic() - start_time) * 1000
                self._log_operation_error(
                    operation, duration_ms, str(e), "ConnectionError", key, attempt
                )
                await self._circuit_breaker.record_failure()
                last_error = S3ConnectionError(
                    f"Connection failed: {e}", operation=operation, key=key
                )

            except BotoCoreError as e:
                duration_ms = (time.monotonic() - start_time) * 1000
                self._log_operation_error(
                    operation, duration_ms, str(e), type(e).__name__, key, attempt
                )
                await self._circuit_breaker.record_failure()
                last_error = S3Error(f"S3 error: {e}", operation=operation, key=key)

            if attempt < self._max_retries - 1:
                delay = self._retry_delay * (2**attempt)
                logger.warning(
                    f"S3 {operation} attempt {attempt + 1} failed, retrying in {delay}s",
                    extra={
                        "s3_operation": operation,
                        "s3_key": key,
                        "attempt": attempt + 1,
                        "max_retries": self._max_retries,
                        "delay_seconds": delay,
                    },
                )
                await asyncio.sleep(delay)

        if last_error:
            raise last_error
        raise S3Error("Operation failed after all retries", operation=operation, key=key)

    async def put_object(self, key: str, data: bytes, content_type: str) -> str:
        """Upload bytes under `key` with the configured ACL; returns the key."""
        client = self._get_client()
        extra: dict[str, Any] = {"ContentType": content_type}
        if self._object_acl:
            extra["ACL"] = self._object_acl

        def put() -> str:
            client.put_object(Bucket=self._bucket, Key=key, Body=data, **extra)
            return key

        await self._execute_with_retry("put_object", put, key)
        return key

    async def delete_object(self, key: str) -> None:
        client = self._get_client()

        def remove() -> None:
            client.delete_object(Bucket=self._bucket, Key=key)

        await self._execute_with_retry("delete_object", remove, key)

    async def check_bucket(self) -> bool:
        """True when the bucket is reachable with the configured credentials."""
        if not self._available:
            return False
        client = self._get_client()

        def head() -> bool:
            client.head_bucket(Bucket=self._bucket)
            return True

        try:
            return bool(await self._execute_with_retry("head_bucket", head))
        except S3Error:
            return False


# Global S3 client instance
s3_client: S3Client | None = None


async def init_s3() -> S3Client:
    """Initialize the global S3 client.

    Raises:
        S3ConfigError: If storage settings are inconsistent
    """
    global s3_client
    if s3_client is None:
        client = S3Client()
        client.validate_config()
        s3_client = client
        if client.available:
            logger.info("S3 client initialized", extra={"s3_bucket": client.bucket})
        else:
            logger.warning("S3 not configured (missing credentials or bucket)")
    return s3_client


async def close_s3() -> None:
    """Drop the global S3 client."""
    global s3_client
    if s3_client:
        s3_client = None
        logger.info("S3 client closed")


async def get_s3() -> S3Client:
    """Dependency for getting the S3 client."""
    if s3_client is None:
        await init_s3()
    return s3_client  # type: ignore[return-value]
