from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    # Scheduler settings
    max_concurrent_jobs: int = 3

    # Step timeouts per stage, in seconds
    setup_timeout: float = 300  # 5 minutes
    lint_timeout: float = 120
    test_timeout: float = 600
    security_timeout: float = 180
    build_timeout: float = 900
    containerize_timeout: float = 1200  # 20 minutes

    # Process supervision
    kill_grace_period: float = 5.0  # SIGTERM -> SIGKILL
    output_chunk_size: int = 4096

    # Event bus
    max_subscribers: int = 100

    default_image_tag: str = "pipelinex-build:latest"

    class Config:
        env_file = ".env"

@lru_cache()
def get_settings() -> Settings:
    return Settings()
