"""Reconcile enrollment summaries against their progress records.

Recomputes every matching summary and prints the sweep report as JSON. Safe
to re-run: pairs already in sync are left untouched.

Usage:
    python scripts/reconcile_sweep.py [--user-id USER] [--course-id COURSE]
"""

import argparse
import asyncio
import sys

import orjson
import structlog

from coursetrack.config import get_settings
from coursetrack.core.context import OperationContext
from coursetrack.core.database import init_async_cassandra, shutdown_async_cassandra
from coursetrack.core.logging import configure_structlog
from coursetrack.core.redis import init_redis, shutdown_redis
from coursetrack.reconciliation.service import SweepReport
from coursetrack.services import build_cassandra_services


logger = structlog.get_logger(__name__)

SCRIPT_ACTOR = "reconcile-sweep-script"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--user-id", help="Only reconcile this learner")
    parser.add_argument("--course-id", help="Only reconcile this course")
    return parser.parse_args(argv)


def render_report(report: SweepReport) -> bytes:
    return orjson.dumps(
        {
            "total": report.total,
            "synced": report.synced,
            "failed": report.failed,
            "details": report.details,
        },
        option=orjson.OPT_INDENT_2,
    )


async def run_sweep(user_id: str | None, course_id: str | None) -> SweepReport:
    """Run one sweep against the configured Cassandra cluster."""
    settings = get_settings()

    redis_client = None
    if settings.topology_cache_enabled:
        try:
            redis_client = await init_redis()
        except Exception as e:
            logger.warning("redis_init_skipped", error=str(e))

    session = await init_async_cassandra()
    try:
        services = build_cassandra_services(settings, session, redis_client)
        with OperationContext(operation="reconcile_sweep", actor_id=SCRIPT_ACTOR):
            return await services.reconciliation_service.sweep(
                user_id=user_id, course_id=course_id
            )
    finally:
        await shutdown_redis()
        await shutdown_async_cassandra()


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_structlog(get_settings())

    report = asyncio.run(run_sweep(args.user_id, args.course_id))
    sys.stdout.write(render_report(report).decode() + "\n")
    return 1 if report.failed else 0


if __name__ == "__main__":
    sys.exit(main())
