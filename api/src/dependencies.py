from fastapi import Request

from engine.src.pipeline_engine import PipelineEngine

def get_engine(request: Request) -> PipelineEngine:
    return request.app.state.engine
