"""Manual trigger for the generation poller.

- POST /api/v1/process-now - Run one poller pass immediately
"""

from typing import Any

from fastapi import APIRouter, Depends, Request

from tubeflow.core.logging import get_logger
from tubeflow.schemas.common import Envelope, ok
from tubeflow.schemas.topic import ProcessNowResponse
from tubeflow.services.generation_poller import GenerationPoller, get_generation_poller

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "/process-now",
    response_model=Envelope[ProcessNowResponse],
    summary="Process pending topics now",
)
async def process_now(
    request: Request,
    poller: GenerationPoller = Depends(get_generation_poller),
) -> dict[str, Any]:
    logger.info(
        "Manual poller pass requested",
        extra={"request_id": getattr(request.state, "request_id", "unknown")},
    )
    result = await poller.process_now()
    return ok(
        result.to_dict(),
        f"Processed {result.completed + result.failed} topic(s)",
    )
