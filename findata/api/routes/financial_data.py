"""API endpoints for company financial data retrieval."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from findata.models.financial import RetrievalError, RetrievalResult
from findata.services.retrieval.retriever import (
    FinancialDataRetriever,
    get_financial_data_retriever,
)

router = APIRouter()
logger = logging.getLogger(__name__)

API_SOURCE = "API"


class FinancialDataRequest(BaseModel):
    """Request body for POST retrievals."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    company: str | None = Field(default=None, description="Company name or website URL.")
    force_refresh: bool = False


def _missing_company(details: str) -> JSONResponse:
    error = RetrievalError(
        message="Company name or URL is required",
        source=API_SOURCE,
        details=details,
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": error.model_dump()},
    )


def _result_response(result: RetrievalResult) -> JSONResponse:
    status_code = status.HTTP_200_OK if result.success else status.HTTP_500_INTERNAL_SERVER_ERROR
    return JSONResponse(status_code=status_code, content=result.to_payload())


@router.get("/financial-data")
async def get_financial_data(
    company: str | None = Query(None, description="Company name or website URL."),
    force_refresh: bool = Query(False, alias="forceRefresh"),
    retriever: FinancialDataRetriever = Depends(get_financial_data_retriever),
) -> JSONResponse:
    """Retrieve financial data for a company given in the query string."""
    if not company or not company.strip():
        return _missing_company("Missing company parameter in request")
    result = await retriever.get_financial_data(company, force_refresh=force_refresh)
    if not result.success:
        logger.warning(
            "financial_data.api_failure",
            extra={"company": company, "source": result.error.source if result.error else None},
        )
    return _result_response(result)


@router.post("/financial-data")
async def post_financial_data(
    payload: FinancialDataRequest,
    retriever: FinancialDataRetriever = Depends(get_financial_data_retriever),
) -> JSONResponse:
    """Retrieve financial data for a company given in the JSON body."""
    if not payload.company or not payload.company.strip():
        return _missing_company("Missing company field in request body")
    result = await retriever.get_financial_data(
        payload.company, force_refresh=payload.force_refresh
    )
    return _result_response(result)
