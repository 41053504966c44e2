from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from findata.config import settings
from findata.services.retrieval.retriever import (
    FinancialDataRetriever,
    get_financial_data_retriever,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
    }


@router.get("/ready")
async def readiness_check(
    retriever: FinancialDataRetriever = Depends(get_financial_data_retriever),
):
    """Readiness check endpoint that includes cache connectivity."""
    if not retriever.cache_available():
        logger.error("health.cache_unavailable")
        raise HTTPException(status_code=503, detail="Cache is not available")

    return {
        "status": "ready",
        "version": settings.app_version,
        "environment": settings.environment,
        "cache": "database" if settings.database_url else "memory",
        "sources": retriever.source_names,
    }
