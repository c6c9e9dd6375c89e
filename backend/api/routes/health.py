"""
api/routes/health.py
--------------------
Health-check endpoint, used by load balancers and container probes.
"""
from __future__ import annotations

from fastapi import APIRouter

import config

router = APIRouter()


@router.get("/health", summary="Health check")
def health() -> dict:
    """Returns 200 OK when the service is running."""
    return {
        "status": "ok",
        "service": "itinerary-pipeline",
        "llm": "stub" if config.USE_STUB_LLM else config.LLM_MODEL_NAME,
    }
