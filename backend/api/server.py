"""
api/server.py
-------------
FastAPI application for the itinerary construction pipeline.

Run dev server:
    cd backend
    uvicorn api.server:app --reload --port 8000

Endpoints:
    GET  /v1/health          liveness and LLM mode
    POST /v1/itinerary/plan  PlanRequest in, serialised TripPlan out
"""
from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import config
from api.routes import health, itinerary

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Itinerary Construction API",
    version="1.0.0",
    description=(
        "Turns fetched POIs, restaurants and hotels into a capacity-checked "
        "day-by-day allocation with meals and accommodation."
    ),
)

# Browser clients call the API directly; no credentials are involved
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix="/v1", tags=["Health"])
app.include_router(itinerary.router, prefix="/v1/itinerary", tags=["Itinerary"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.server:app", host=config.API_HOST, port=config.API_PORT, reload=True)
