"""Usage router — provider usage counters and cache maintenance."""

from fastapi import APIRouter, Depends

from tripsearch.services.search_engine import SearchEngine, get_search_engine

router = APIRouter()


@router.get("/usage")
async def get_usage(engine: SearchEngine = Depends(get_search_engine)):
    """Per-provider calls, failures by kind, offers and latency since startup."""
    return engine.usage()


@router.get("/cache/stats")
async def get_cache_stats(engine: SearchEngine = Depends(get_search_engine)):
    return await engine.cache.stats()


@router.delete("/cache")
async def clear_cache(engine: SearchEngine = Depends(get_search_engine)):
    cleared = await engine.cache.clear()
    return {"cleared": cleared}
