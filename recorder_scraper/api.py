"""FastAPI boundary: validates scrape requests and maps results to JSON responses."""

import logging
from typing import Callable, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .config import Settings
from .errors import ConfigError
from .models import DEFAULT_DAYS_BACK, MAX_DAYS_BACK, ScrapeConfig
from .orchestrator import ScrapeOrchestrator
from .sites import get_site

load_dotenv()

logger = logging.getLogger("recorder_scraper")

app = FastAPI(
    title="Recorder Scraper API",
    version="0.1.0",
    description="Runs a county recorder search and stores the exported document.",
)

OrchestratorFactory = Callable[[str], ScrapeOrchestrator]


class ScrapeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    days_back: int = Field(DEFAULT_DAYS_BACK, ge=1, le=MAX_DAYS_BACK, alias="daysBack")
    record_type: Optional[str] = Field(None, min_length=1, alias="recordType")
    site: Optional[str] = None


def get_settings() -> Settings:
    return Settings.from_env()


def get_orchestrator_factory(settings: Settings = Depends(get_settings)) -> OrchestratorFactory:
    return lambda site_id: ScrapeOrchestrator.from_settings(settings, site_id)


def _invalid(details) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"ok": False, "error": "Invalid request parameters", "details": details},
    )


def jsonable_errors(exc: RequestValidationError):
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", ""), "type": error.get("type", "")}
        for error in exc.errors()
    ]


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return _invalid(jsonable_errors(exc))


@app.get("/api/health")
def health():
    return {"status": "ok", "service": "recorder-scraper"}


@app.post("/api/scrape")
def scrape(
    body: Optional[ScrapeRequest] = None,
    settings: Settings = Depends(get_settings),
    factory: OrchestratorFactory = Depends(get_orchestrator_factory),
):
    """Run one scrape. Runs in the worker threadpool, one browser session per request."""
    body = body or ScrapeRequest()
    site_id = body.site or settings.site
    try:
        get_site(site_id)
        config = ScrapeConfig(days_back=body.days_back, record_type=body.record_type)
    except ConfigError as e:
        return _invalid([{"loc": ["body"], "msg": str(e), "type": "value_error"}])

    logger.info(f"Starting scrape with config: {config}")
    try:
        orchestrator = factory(site_id)
    except ConfigError as e:
        logger.error(f"Scraper is not configured: {e}")
        return JSONResponse(status_code=500, content={"ok": False, "error": str(e)})

    result = orchestrator.execute(config)
    if result.success:
        return {
            "ok": True,
            "message": "Scraping completed successfully",
            "s3Path": result.locator,
        }
    return JSONResponse(status_code=500, content={"ok": False, "error": result.error or "Scraping failed"})
