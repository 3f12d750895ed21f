"""FastAPI server for Geo Index."""

import asyncio
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel

from geo_index import data_loader, utils
from geo_index.geo import InvalidGeometryError, haversine_km, km_to_chord
from geo_index.reverse_geocode import ReverseGeoCode


logger = logging.getLogger(__name__)

app = FastAPI(
    title="Geo Index API",
    description="Reverse geocoding over GeoNames gazetteers",
    version="0.1.0"
)

# Global state
_index: Optional[ReverseGeoCode] = None
_config: dict = {}


class PlaceResult(BaseModel):
    """Single place in a search response."""
    id: Optional[int] = None
    name: Optional[str] = None
    latitude: float
    longitude: float
    distance_km: float


class SearchResponse(BaseModel):
    lat: float
    lng: float
    count: int
    results: List[PlaceResult]


def set_index(index: Optional[ReverseGeoCode]):
    """Replace the index served by the API."""
    global _index
    _index = index


def _index_file(config: dict) -> Optional[str]:
    path = config.get('server', {}).get('geonames_file')
    if not path:
        path = config.get('data', {}).get('geonames_file')
    return path or None


@app.on_event("startup")
async def startup():
    """Load configuration and build the index on startup."""
    global _config

    config_path = os.getenv('GEO_INDEX_CONFIG', 'config/default_config.yml')
    try:
        _config = utils.load_config_with_env_vars(utils.load_config(config_path))
    except FileNotFoundError:
        logger.warning("Config %s not found, using defaults", config_path)
        _config = {}

    if _index is not None:
        return

    path = _index_file(_config)
    if not path or not Path(path).exists():
        logger.warning("No GeoNames file at %s; searches will return 503", path)
        return

    extended = _config.get('data', {}).get('extended_format', True)
    set_index(await asyncio.to_thread(data_loader.build_index, path, extended))
    logger.info("Index loaded with %d places", _index.count)


def _require_index() -> ReverseGeoCode:
    if _index is None:
        raise HTTPException(status_code=503, detail="Index not loaded")
    return _index


def _to_response(lat: float, lng: float, hits) -> SearchResponse:
    results = [
        PlaceResult(
            id=getattr(record, 'id', None),
            name=getattr(record, 'name', None),
            latitude=record.latitude,
            longitude=record.longitude,
            distance_km=round(
                haversine_km(lat, lng, record.latitude, record.longitude), 3
            )
        )
        for record in hits
    ]
    return SearchResponse(lat=lat, lng=lng, count=len(results), results=results)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Geo Index API",
        "version": "0.1.0",
        "status": "running",
        "index_loaded": _index is not None
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "index_loaded": _index is not None,
        "places": _index.count if _index is not None else 0
    }


@app.get("/nearest", response_model=SearchResponse)
async def nearest(lat: float, lng: float, count: int = Query(10, ge=0)):
    """Closest places to a coordinate."""
    index = _require_index()

    try:
        hits = await index.nearest_neighbour_search_async(lat, lng, count)
    except InvalidGeometryError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return _to_response(lat, lng, hits)


@app.get("/radial", response_model=SearchResponse)
async def radial(lat: float, lng: float,
                 radius_km: float = Query(25.0, ge=0),
                 count: int = Query(10, ge=0)):
    """Places within radius_km of a coordinate, closest first."""
    index = _require_index()

    try:
        hits = await index.radial_search_async(
            lat, lng, km_to_chord(radius_km), count
        )
    except InvalidGeometryError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return _to_response(lat, lng, hits)


def run_server(host: str = "0.0.0.0", port: int = 8080):
    """Run the FastAPI server."""
    uvicorn.run(app, host=host, port=port)
