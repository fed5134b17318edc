"""
PipelineX Engine - run a build plan locally.

    python -m engine.src.main plan.yml --work-dir path/to/checkout
"""

import argparse
import asyncio
import logging
import os
import sys

from engine.src.config import get_settings
from engine.src.models.step import JobStatus
from engine.src.pipeline_engine import PipelineEngine
from engine.src.services.events import EventType, PipelineEvent
from engine.src.services.plan_parser import PlanConfigError, load_plan_file

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)

logger = logging.getLogger(__name__)

def print_log_line(event: PipelineEvent):
    entry = event.log
    where = "/".join(part for part in (entry.stage, entry.step) if part) or "pipeline"
    print(f"[{entry.level.value:5}] {where}: {entry.message}", flush=True)

async def run_plan(plan_path: str, work_dir: str) -> JobStatus:
    plan = load_plan_file(plan_path)
    engine = PipelineEngine(get_settings())
    engine.events.subscribe(print_log_line, event_types=[EventType.LOG])

    job_id = await engine.create_job(plan, work_dir, repository_id=os.path.basename(work_dir))

    try:
        job = await engine.wait_for_job(job_id)
    except asyncio.CancelledError:
        await engine.shutdown()
        raise

    failed = job.failed_step()
    if failed:
        stage, step = failed
        logger.error(f"Stage {stage.name}, step {step.name} failed: {step.error}")

    return job.status

def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Run a build plan against a checkout")
    parser.add_argument("plan", help="Path to a build plan YAML or JSON file")
    parser.add_argument("--work-dir", default=".", help="Checkout to run the plan in")
    args = parser.parse_args()

    work_dir = os.path.abspath(args.work_dir)
    logger.info(f"Running {args.plan} in {work_dir}")

    try:
        status = asyncio.run(run_plan(args.plan, work_dir))
    except PlanConfigError as e:
        logger.error(f"Invalid build plan: {e}")
        sys.exit(2)
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(130)

    logger.info(f"Pipeline finished with status: {status.value}")
    sys.exit(0 if status == JobStatus.SUCCESS else 1)

if __name__ == "__main__":
    main()
