#!/usr/bin/env python3
"""
Run the TrendReel pipeline once from the command line.

Uses the capabilities configured in the environment (.env). Without a
YouTube API key the run uses the mock trend dataset; without
PUBLISH_MODE=youtube the upload is simulated.

Usage:
    python scripts/run_pipeline.py --channel-id demo --niche "science experiments"
    python scripts/run_pipeline.py --mock --keywords ai gadgets --publish-in 60
    python scripts/run_pipeline.py --json
"""

import argparse
import asyncio
import json
import sys
from datetime import timedelta

sys.path.insert(0, ".")

from trendreel.core.container import initialize_container, shutdown_container
from trendreel.models.schemas import ChannelConfig, ScheduleConfig, utc_now


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the trend-to-Short pipeline once")
    parser.add_argument("--channel-id", default="cli", help="Channel id used in logs")
    parser.add_argument("--name", default="CLI Channel", help="Channel display name")
    parser.add_argument("--niche", default="", help="Channel niche, e.g. 'science experiments'")
    parser.add_argument("--audience", default="", help="Target audience description")
    parser.add_argument("--avg-views", type=int, default=0, help="Channel average views")
    parser.add_argument("--keywords", nargs="*", default=[], help="Trend search keywords")
    parser.add_argument("--region", default=None, help="YouTube region code, e.g. TW")
    parser.add_argument("--mock", action="store_true", help="Use the mock trend dataset")
    parser.add_argument(
        "--publish-in",
        type=int,
        default=None,
        metavar="MINUTES",
        help="Schedule the upload this many minutes from now instead of publishing immediately",
    )
    parser.add_argument("--json", action="store_true", help="Print the full result as JSON")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    channel = ChannelConfig(
        id=args.channel_id,
        name=args.name,
        niche=args.niche,
        target_audience=args.audience,
        avg_views=args.avg_views,
        search_keywords=tuple(args.keywords),
        region_code=args.region,
    )
    schedule = None
    if args.publish_in is not None:
        schedule = ScheduleConfig(publish_at=utc_now() + timedelta(minutes=args.publish_in))

    container = await initialize_container()
    try:
        result = await container.orchestrator.run(channel, schedule=schedule, force_mock=args.mock)
    finally:
        await shutdown_container()

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        print("=" * 70)
        for line in result.logs:
            print(line)
        print("=" * 70)
        print(f"Success:   {result.success}")
        print(f"Mock data: {result.used_mock_data}")
        if result.video_url:
            print(f"Video:     {result.video_url}")
        if result.error:
            print(f"Failed at: {result.failed_stage.value if result.failed_stage else 'unknown'}")
            print(f"Error:     {result.error}")

    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(run(parse_args())))
