import importlib
import logging
from typing import Optional

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .arbiter import ArbitrationError
from .cache import cache_headers_for
from .config import Settings
from .models import ArrivalsResponse, Source
from .providers.base import Provider
from .providers.google import GoogleDirectionsProvider
from .service import ArrivalsService

# =========================
# Settings, logging & app
# =========================
settings = Settings.from_env()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="nextbus", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_origin],
    allow_credentials=False,
    allow_methods=["GET"],
    allow_headers=["*"],
)

# =========================
# Provider loader (primary source)
# =========================
def load_primary(settings: Settings) -> Provider:
    """Instantiate ``nextbus.providers.<name>.<Name>Provider`` for the primary slot."""
    name = settings.primary_provider.strip().lower()
    try:
        module = importlib.import_module(f"{__package__}.providers.{name}")
    except ModuleNotFoundError as e:
        raise RuntimeError(f"unknown primary provider {name!r}") from e
    provider_cls = getattr(module, f"{name.capitalize()}Provider", None)
    if provider_cls is None or getattr(provider_cls, "source", None) is not Source.PRIMARY:
        raise RuntimeError(f"{module.__name__} has no primary provider")
    # PROVIDER_OPTS wins over the configured per-call timeout
    return provider_cls(**{"timeout": settings.primary_timeout, **settings.provider_opts})


def build_service(settings: Settings) -> ArrivalsService:
    return ArrivalsService(
        primary=load_primary(settings),
        secondary=GoogleDirectionsProvider(settings.secondary, timeout=settings.secondary_timeout),
        grace=settings.grace_seconds,
        timeout=settings.timeout_seconds,
    )


service = build_service(settings)

# =========================
# Endpoints
# =========================
@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/arrivals", response_model=ArrivalsResponse)
async def arrivals(
    stop: Optional[str] = Query(None, description="Stop id, e.g. PH1474"),
    service_id: Optional[str] = Query(None, alias="service", description="Line id, e.g. H09"),
    force_secondary: Optional[str] = Query(None, description="1 skips the primary feed"),
    fg: Optional[str] = Query(None, include_in_schema=False),
):
    forced = (force_secondary or fg or "") == "1"
    try:
        decision = await service.get_arrivals(
            stop or settings.default_stop,
            service_id or settings.default_line,
            force_secondary=forced,
        )
    except ArbitrationError as e:
        logger.exception("arbitration failed")
        return JSONResponse(status_code=500, content={"error": str(e)})

    body = ArrivalsResponse.from_decision(decision)
    headers = cache_headers_for(decision.source)
    headers["X-Data-Source"] = decision.source.value
    return JSONResponse(content=body.model_dump(mode="json"), headers=headers)
