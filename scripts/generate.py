#!/usr/bin/env python3
"""
Generate Script

Submits a prompt to a running API and polls until the result is ready.

Usage:
    GENSTUDIO_TOKEN=... python scripts/generate.py "a red fox in snow" --type image
    GENSTUDIO_TOKEN=... python scripts/generate.py "a red fox in snow" --free --model turbo
"""

import argparse
import asyncio
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import structlog

from app.client import GenerationClient, GenerationClientError
from app.config import settings
from app.models.api import GenerationType, JobStatus

logger = structlog.get_logger()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Submit a prompt and wait for the result")
    parser.add_argument("prompt", help="Text prompt")
    parser.add_argument(
        "--type",
        choices=[t.value for t in GenerationType if t != GenerationType.FREE_IMAGE],
        default=GenerationType.IMAGE.value,
        help="Generation type (default: image)",
    )
    parser.add_argument("--free", action="store_true", help="Use the free image endpoint")
    parser.add_argument("--model", default="flux", help="Free image model (default: flux)")
    parser.add_argument(
        "--base-url",
        default=os.environ.get("GENSTUDIO_URL", "http://localhost:8000"),
        help="API base URL",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=settings.status_poll_interval_seconds,
        help=f"Poll interval in seconds (default: {settings.status_poll_interval_seconds})",
    )
    parser.add_argument("--max-wait", type=float, default=600.0, help="Give up after this many seconds")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    token = os.environ.get("GENSTUDIO_TOKEN")
    if not token:
        logger.error("GENSTUDIO_TOKEN not set in environment")
        return 2

    client = GenerationClient(args.base_url, token, poll_interval=args.interval)
    try:
        if args.free:
            free_job = await client.submit_free(args.prompt, model=args.model)
            print(free_job.result_url)
            return 0

        job = await client.submit(args.prompt, GenerationType(args.type))
        logger.info("job_submitted", job_id=str(job.internal_job_id), status=job.status.value)
        result = await client.wait_for_result(job.internal_job_id, max_wait=args.max_wait)
    except GenerationClientError as e:
        logger.error("generation_failed", status_code=e.status_code, error=e.message)
        return 1
    finally:
        await client.close()

    if result.status == JobStatus.FAILED:
        logger.error("job_failed", error=result.error_message)
        return 1

    print(result.url or "")
    return 0


def main() -> None:
    sys.exit(asyncio.run(run(parse_args())))


if __name__ == "__main__":
    main()
