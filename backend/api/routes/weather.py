"""
Weather proxy endpoint.

GET /api/weather?lat=..&lon=..&units=imperial|metric
"""
from __future__ import annotations

from typing import Any, Optional

import httpx
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from shared.config import get_settings
from shared.utils.logging import get_logger
from shared.utils.metrics import WEATHER_REQUESTS

from api.dependencies import get_weather_cache
from api.weather import VALID_UNITS, WeatherCache, build_params, transform_response

logger = get_logger(__name__)
router = APIRouter(prefix="/api", tags=["weather"])


def get_weather_client(request: Request) -> Optional[httpx.AsyncClient]:
    """Shared upstream client set up in the lifespan; None means use a per-request client."""
    return getattr(request.app.state, "weather_client", None)


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": message})


@router.get("/weather", response_model=None)
async def get_weather(
    lat: Optional[float] = Query(default=None),
    lon: Optional[float] = Query(default=None),
    units: Optional[str] = Query(default=None),
    cache: WeatherCache = Depends(get_weather_cache),
    client: Optional[httpx.AsyncClient] = Depends(get_weather_client),
) -> Any:
    if lat is None or lon is None:
        return _bad_request(
            "lat and lon query parameters are required (e.g. /api/weather?lat=38.9&lon=-77.0)."
        )

    units = (units or "imperial").lower()
    if units not in VALID_UNITS:
        return _bad_request("units must be 'imperial' or 'metric'.")

    settings = get_settings()
    cache_key = WeatherCache.key(lat, lon, units)
    cached = cache.get(cache_key)
    if cached is not None:
        WEATHER_REQUESTS.labels(result="hit").inc()
        return cached
    WEATHER_REQUESTS.labels(result="miss").inc()

    params = build_params(lat, lon, units)
    try:
        if client is not None:
            upstream = await client.get(settings.weather_base_url, params=params)
        else:
            async with httpx.AsyncClient(timeout=settings.weather_request_timeout_s) as own:
                upstream = await own.get(settings.weather_base_url, params=params)
    except httpx.HTTPError as exc:
        logger.warning("weather_upstream_failed", error=str(exc))
        return JSONResponse(
            status_code=502,
            content={"error": "Upstream request failed", "detail": str(exc)},
        )

    if upstream.is_error:
        return JSONResponse(
            status_code=upstream.status_code,
            content={"error": "Upstream weather API error", "detail": upstream.text},
        )

    try:
        body = transform_response(lat, lon, upstream.json())
    except (KeyError, TypeError, ValueError) as exc:
        logger.warning("weather_upstream_malformed", error=str(exc))
        return JSONResponse(
            status_code=502,
            content={"error": "Upstream weather API returned an unexpected body"},
        )

    cache.set(cache_key, body, settings.weather_cache_ttl_s)
    return body
