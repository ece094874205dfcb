"""Integrations layer - External service clients.

Integrations handle communication with external APIs and services.
They abstract the details of external service protocols.
"""

from tubeflow.integrations.gemini import (
    GeminiClient,
    GeminiResult,
    close_gemini,
    get_gemini,
    init_gemini,
)
from tubeflow.integrations.s3 import (
    S3AuthError,
    S3CircuitOpenError,
    S3Client,
    S3ConfigError,
    S3ConnectionError,
    S3Error,
    S3NotFoundError,
    close_s3,
    get_s3,
    init_s3,
)

__all__ = [
    "GeminiClient",
    "GeminiResult",
    "close_gemini",
    "get_gemini",
    "init_gemini",
    "S3AuthError",
    "S3CircuitOpenError",
    "S3Client",
    "S3ConfigError",
    "S3ConnectionError",
    "S3Error",
    "S3NotFoundError",
    "close_s3",
    "get_s3",
    "init_s3",
]
