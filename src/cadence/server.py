import logging
import time
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from cadence.application.drill_service import DrillService
from cadence.consts import VERSION
from cadence.domain.exceptions import NotFoundError, ValidationError
from cadence.domain.review.models import ContentItem, DrillItem, DrillKind, DrillStats
from cadence.infrastructure.serialization import record_to_dict

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cadence.server")

_services: dict[DrillKind, DrillService] = {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Cadence Server v{VERSION} starting up...")
    yield
    # Shutdown
    _services.clear()
    logger.info("Cadence Server shutting down...")


app = FastAPI(
    title="Cadence Server",
    description="Spaced-repetition scheduling for vocabulary, translation, listening and shadowing drills.",
    version=VERSION,
    lifespan=lifespan,
)

start_time = time.time()


def get_service(kind: str) -> DrillService:
    """
    Resolve the DrillService for a path's drill kind. One service per kind is
    kept for the life of the process.
    """
    from cadence.application.config import resolve_config
    from cadence.application.factory import get_drill_service

    drill_kind = DrillKind.parse(kind)
    if drill_kind not in _services:
        _services[drill_kind] = get_drill_service(resolve_config(), drill_kind)
    return _services[drill_kind]


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


# ---------------------------------------------------------------------------
# Response shaping
# ---------------------------------------------------------------------------


def content_to_dict(item: ContentItem) -> dict[str, Any]:
    return {
        "content_id": item.content_id,
        "kind": item.kind.value if item.kind else None,
        "text": item.text,
        "translation": item.translation,
        "audio": item.audio,
        "extra": dict(item.extra),
    }


def drill_item_to_dict(item: DrillItem) -> dict[str, Any]:
    return {
        "content": content_to_dict(item.content),
        "record": record_to_dict(item.record) if item.record else None,
    }


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class StatsResponse(BaseModel):
    total: int
    with_review: int
    without_review: int
    due_today: int
    starred_count: int
    difficult_count: int

    @classmethod
    def from_stats(cls, stats: DrillStats) -> "StatsResponse":
        return cls(**asdict(stats))


class ReviewRequest(BaseModel):
    content_id: str
    # Validated by the domain so bad values map to 400, not 422
    rating: Any
    extra: dict[str, str] | None = None


class CollectRequest(BaseModel):
    content_id: str
    tier: str | None = None


class DirectionRequest(BaseModel):
    # Validated by the domain, as with ratings
    direction: Any = None


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


@app.get("/{kind}/items")
async def list_items(service: DrillService = Depends(get_service)):
    items = await service.list_all()
    return {"items": [drill_item_to_dict(i) for i in items], "total": len(items)}


@app.get("/{kind}/due")
async def list_due(service: DrillService = Depends(get_service)):
    items = await service.list_due()
    return {"items": [drill_item_to_dict(i) for i in items], "total": len(items)}


@app.get("/{kind}/stats", response_model=StatsResponse)
async def get_stats(service: DrillService = Depends(get_service)):
    return StatsResponse.from_stats(await service.get_stats())


@app.get("/{kind}/learn")
async def get_learn_candidate(service: DrillService = Depends(get_service)):
    """Returns a random eligible item that has no review record yet."""
    return content_to_dict(await service.get_learn_candidate())


@app.post("/{kind}/collect", status_code=201)
async def collect(req: CollectRequest, service: DrillService = Depends(get_service)):
    item = await service.collect(req.content_id, req.tier)
    return drill_item_to_dict(item)


@app.post("/{kind}/review")
async def submit_review(req: ReviewRequest, service: DrillService = Depends(get_service)):
    """
    Submit a rating and schedule the next review.
    """
    item = await service.submit_rating(req.content_id, req.rating, req.extra)
    return drill_item_to_dict(item)


@app.put("/{kind}/{content_id}/star")
async def toggle_star(content_id: str, service: DrillService = Depends(get_service)):
    return record_to_dict(await service.toggle_star(content_id))


@app.get("/{kind}/{content_id}/preview")
async def preview(content_id: str, service: DrillService = Depends(get_service)):
    intervals = await service.preview(content_id)
    return {"intervals": {rating.name.lower(): days for rating, days in intervals.items()}}


@app.put("/{kind}/{content_id}/direction")
async def set_card_direction(
    content_id: str, req: DirectionRequest, service: DrillService = Depends(get_service)
):
    return record_to_dict(await service.set_card_direction(content_id, req.direction))


# Declared last so the fixed paths above (/items, /due, ...) match first.
@app.get("/{kind}/{content_id}")
async def get_item(content_id: str, service: DrillService = Depends(get_service)):
    return drill_item_to_dict(await service.get_item(content_id))
