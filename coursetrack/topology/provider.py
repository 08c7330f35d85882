"""Course topology providers.

The completion calculator cannot run without a topology, so every provider
either returns one or raises :class:`TopologyLookupError`. None of them ever
answers with an empty course on failure.
"""

import asyncio
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import orjson
import structlog
from cassandra import DriverException, RequestExecutionException
from cassandra.cluster import NoHostAvailable
from redis.exceptions import RedisError

from coursetrack.core.redis import topology_cache_key
from coursetrack.errors import TopologyLookupError

from .models import CourseTopology, ModuleTopology


if TYPE_CHECKING:
    import redis.asyncio as redis
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)

_DRIVER_ERRORS = (DriverException, RequestExecutionException, NoHostAvailable)


def course_not_found(course_id: str) -> TopologyLookupError:
    return TopologyLookupError(
        f"Course {course_id} not found",
        code="course_not_found",
        retryable=False,
    )


@runtime_checkable
class TopologyProvider(Protocol):
    async def get_topology(self, course_id: str) -> CourseTopology:
        """Return the ordered module/lesson structure of a course."""
        ...


class StaticTopologyProvider:
    """Serves topologies registered in process."""

    def __init__(self, topologies: list[CourseTopology] | None = None) -> None:
        self._topologies: dict[str, CourseTopology] = {}
        for topology in topologies or []:
            self.register(topology)

    def register(self, topology: CourseTopology) -> None:
        self._topologies[topology.course_id] = topology

    async def get_topology(self, course_id: str) -> CourseTopology:
        topology = self._topologies.get(course_id)
        if topology is None:
            raise course_not_found(course_id)
        return topology


class CassandraTopologyProvider:
    """Reads topology from the course authoring tables."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        self._get_course = self.session.prepare(f"""
            SELECT id, title FROM {self.keyspace}.courses WHERE id = ?
        """)

        self._get_course_modules = self.session.prepare(f"""
            SELECT module_id FROM {self.keyspace}.course_modules
            WHERE course_id = ?
        """)

        self._get_module_lessons = self.session.prepare(f"""
            SELECT lesson_id FROM {self.keyspace}.module_lessons
            WHERE module_id = ?
        """)

    async def _module(self, module_id: str) -> ModuleTopology:
        rows = await self.session.aexecute(self._get_module_lessons, [module_id])
        return ModuleTopology(
            module_id=module_id,
            lesson_ids=tuple(row.lesson_id for row in rows),
        )

    async def get_topology(self, course_id: str) -> CourseTopology:
        try:
            result = await self.session.aexecute(self._get_course, [course_id])
            course = result.one()
            if course is None:
                raise course_not_found(course_id)

            module_rows = await self.session.aexecute(
                self._get_course_modules, [course_id]
            )
            modules = await asyncio.gather(
                *(self._module(row.module_id) for row in module_rows)
            )
        except _DRIVER_ERRORS as e:
            logger.error(
                "topology_lookup_failed",
                course_id=course_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise TopologyLookupError(
                f"Topology for course {course_id} is unavailable"
            ) from e

        return CourseTopology(
            course_id=course_id,
            course_name=course.title or "",
            modules=tuple(modules),
        )


class CachedTopologyProvider:
    """Expiring Redis cache in front of another provider.

    Entries expire after ``ttl_seconds`` and are dropped explicitly through
    :meth:`invalidate` when a course is re-authored. Redis errors fall through to
    the wrapped provider.
    """

    def __init__(
        self,
        provider: TopologyProvider,
        redis_client: "redis.Redis",
        ttl_seconds: int = 300,
    ) -> None:
        self.provider = provider
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds

    async def get_topology(self, course_id: str) -> CourseTopology:
        key = topology_cache_key(course_id)

        try:
            cached = await self.redis.get(key)
        except RedisError as e:
            logger.warning(
                "topology_cache_read_failed", course_id=course_id, error=str(e)
            )
            cached = None

        if cached:
            return CourseTopology.from_dict(orjson.loads(cached))

        topology = await self.provider.get_topology(course_id)

        try:
            await self.redis.setex(
                key, self.ttl_seconds, orjson.dumps(topology.to_dict())
            )
        except RedisError as e:
            logger.warning(
                "topology_cache_write_failed", course_id=course_id, error=str(e)
            )

        return topology

    async def invalidate(self, course_id: str) -> None:
        try:
            await self.redis.delete(topology_cache_key(course_id))
        except RedisError as e:
            logger.warning(
                "topology_cache_invalidate_failed", course_id=course_id, error=str(e)
            )
        else:
            logger.info("topology_cache_invalidated", course_id=course_id)
