"""API v1 router and endpoint organization."""

from fastapi import APIRouter

from tubeflow.api.v1.endpoints import ideas, keywords, processing, topics

router = APIRouter(prefix="/api/v1", tags=["v1"])

router.include_router(topics.router, prefix="/topics", tags=["Topics"])
router.include_router(keywords.router, prefix="/keywords", tags=["Keywords"])
router.include_router(ideas.router, prefix="/ideas", tags=["Ideas"])
router.include_router(processing.router, tags=["Processing"])
