"""
api/routes/itinerary.py
------------------------
POST /v1/itinerary/plan

Runs the itinerary construction pipeline on the data supplied in the body
(schemas.request.PlanRequest) and returns the serialised TripPlan.

Request-shape problems are rejected by pydantic before the handler runs (422).
Data problems inside the pipeline are not errors: they come back as
`warnings` in the response. Anything else is a 500.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from main import plan_from_request, serialize_plan
from schemas.request import PlanRequest

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/plan", summary="Build a day-by-day allocation for one trip")
def plan_itinerary(req: PlanRequest) -> dict:
    """
    Pipeline stages:
      1. Candidate pool (merge, dedup, filter, score, select)
      2. Day clustering
      3. Capacity rebalancing
      4. Hotel selection and meal assignment
      5. Day theming and quality gate
    """
    try:
        plan = plan_from_request(req)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=f"Invalid trip data: {exc}") from exc
    except Exception as exc:
        logger.exception("Pipeline failed for session %s", req.session_id)
        raise HTTPException(status_code=500, detail=f"Pipeline error: {exc}") from exc

    return serialize_plan(plan)
