from __future__ import annotations

import calendar
import logging
from datetime import date

import httpx
from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from config import FUNDS_CACHE_TTL
from tools.cache import cached
from tools.errors import UpstreamAPIFailure
from tools.portal import FundRecord, fetch_funds
from tools.report import generate_report, list_models

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["funds"])


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status)


def month_bounds(today: date) -> tuple[date, date]:
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=1), today.replace(day=last_day)


@cached(ttl=FUNDS_CACHE_TTL)
async def _funds_for_range(date_from: date, date_to: date) -> list[FundRecord]:
    return await fetch_funds(date_from, date_to)


class AnalyzeBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    portfolio: FundRecord
    api_key: str | None = Field(None, alias="apiKey")
    model: str | None = None


class ModelsBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    api_key: str | None = Field(None, alias="apiKey")


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.get("/funds")
async def get_funds(
    date_from: str | None = Query(None, alias="from"),
    date_to: str | None = Query(None, alias="to"),
):
    first_day, last_day = month_bounds(date.today())
    try:
        start = date.fromisoformat(date_from) if date_from else first_day
        end = date.fromisoformat(date_to) if date_to else last_day
    except ValueError:
        return _error(400, "Dates must be ISO formatted (YYYY-MM-DD)")
    if start > end:
        return _error(400, "'from' must not be after 'to'")

    try:
        funds = await _funds_for_range(date_from=start, date_to=end)
    except Exception as e:
        logger.error(f"Fund table scrape failed ({start} -> {end}): {e}")
        return _error(500, "Failed to scrape data")

    return {"success": True, "data": [f.model_dump(by_alias=True) for f in funds]}


@router.post("/analyze")
async def analyze(body: AnalyzeBody):
    if not body.api_key:
        return _error(400, "API Key is required")

    try:
        result = await generate_report(body.portfolio, body.api_key, body.model)
    except UpstreamAPIFailure as e:
        return _error(500, str(e))
    except Exception as e:
        logger.error(f"Report generation failed for '{body.portfolio.name}': {e}")
        return _error(500, str(e) or "Failed to generate analysis")

    return {"success": True, **result}


@router.post("/models")
async def models(body: ModelsBody):
    if not body.api_key:
        return _error(400, "API Key is required")

    try:
        available = await list_models(body.api_key)
    except httpx.HTTPStatusError as e:
        logger.warning(f"Model listing rejected: HTTP {e.response.status_code}")
        return _error(e.response.status_code, "Failed to fetch models")
    except Exception as e:
        logger.error(f"Model listing failed: {e}")
        return _error(500, str(e) or "Internal server error")

    return {"success": True, "models": available}
