"""Feed scraper monitoring endpoints."""

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel

from rssagg.core.scheduler import get_scheduler

router = APIRouter()


class ScraperStatusResponse(BaseModel):
    """Response model for the scraper status."""

    enabled: bool
    running: bool
    config: dict[str, Any] | None
    next_run_at: str | None = None
    last_batch: dict[str, Any] | None


@router.get("/scraper/status", response_model=ScraperStatusResponse)
async def scraper_status() -> ScraperStatusResponse:
    """
    Report whether the scrape schedule is running, when it fires next and
    how the last batch went.

    `last_batch` is null until the first tick completes.
    """
    scheduler = get_scheduler()
    if scheduler is None:
        return ScraperStatusResponse(enabled=False, running=False, config=None, last_batch=None)

    return ScraperStatusResponse(enabled=True, **scheduler.status())
