from fastapi import APIRouter, Depends

from api.src.dependencies import get_engine
from engine.src.pipeline_engine import PipelineEngine

router = APIRouter(tags=["health"])

@router.get("/health")
async def health_check():
    return {"status": "healthy", "service": "pipelinex-api"}

@router.get("/health/engine")
async def engine_health_check(engine: PipelineEngine = Depends(get_engine)):
    queue = engine.get_queue_status()
    return {
        "status": "healthy",
        "active_runners": engine.scheduler.active_count,
        "max_concurrent_jobs": engine.scheduler.max_concurrent_jobs,
        "queue_length": queue.queued,
        "subscribers": len(engine.events.subscribers),
    }
