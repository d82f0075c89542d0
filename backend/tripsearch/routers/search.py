"""Search router — flight and hotel search over the aggregation engine."""

import logging

from fastapi import APIRouter, Depends, Header

from tripsearch.schemas.api import FlightSearchBody, HotelSearchBody
from tripsearch.schemas.result import RankedResult
from tripsearch.services.search_engine import SearchEngine, get_search_engine

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/flights", response_model=RankedResult)
async def search_flights(
    body: FlightSearchBody,
    caller_id: str = Header(..., alias="X-Caller-Id"),
    engine: SearchEngine = Depends(get_search_engine),
):
    return await engine.search(caller_id, body.to_request())


@router.post("/hotels", response_model=RankedResult)
async def search_hotels(
    body: HotelSearchBody,
    caller_id: str = Header(..., alias="X-Caller-Id"),
    engine: SearchEngine = Depends(get_search_engine),
):
    return await engine.search(caller_id, body.to_request())
