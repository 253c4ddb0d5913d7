# src/demandscope/api/app.py
"""
FastAPI application wiring.

This file creates the `FastAPI` instance and applies middleware.
Business logic lives in `demandscope.recommender.service` and below.
"""

from __future__ import annotations

import os

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from demandscope.core.logging import configure_logging

from .routes import router

configure_logging()

app = FastAPI(title="DemandScope API", version="0.1.0")

# CORS (dev-friendly): allow local map frontends to call this API.
# - DEMANDSCOPE_CORS_ORIGINS="http://localhost:3000,http://127.0.0.1:3000"
# - DEMANDSCOPE_CORS_ALLOW_LOCAL=0 to disable the default localhost allowance
cors_origins = [s.strip() for s in os.getenv("DEMANDSCOPE_CORS_ORIGINS", "").split(",") if s.strip()]
cors_allow_local = os.getenv("DEMANDSCOPE_CORS_ALLOW_LOCAL", "1").strip().lower() in {"1", "true", "yes", "y"}
cors_origin_regex = (
    r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$" if cors_allow_local and not cors_origins else ""
)
if cors_origins or cors_origin_regex:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_origin_regex=cors_origin_regex or None,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(router)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
