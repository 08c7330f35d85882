"""Tests for course topology providers."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import orjson
import pytest
from cassandra.cluster import NoHostAvailable, Session
from redis.exceptions import ConnectionError as RedisConnectionError

from coursetrack.errors import TopologyLookupError
from coursetrack.topology import (
    CachedTopologyProvider,
    CassandraTopologyProvider,
    CourseTopology,
    StaticTopologyProvider,
    TopologyProvider,
)


COURSE_ID = "course-1"


@pytest.fixture
def course() -> CourseTopology:
    return CourseTopology.build(
        COURSE_ID, {"m1": ["l1", "l2"], "m2": ["l3"]}, course_name="Intro"
    )


class TestCourseTopology:
    def test_lesson_keys(self, course) -> None:
        assert course.total_lessons == 3
        assert course.lesson_keys == {"m1_l1", "m1_l2", "m2_l3"}
        assert course.get_module("m2").lesson_keys == ("m2_l3",)
        assert course.get_module("m9") is None

    def test_dict_form_preserves_order(self, course) -> None:
        restored = CourseTopology.from_dict(course.to_dict())

        assert restored == course
        assert [m.module_id for m in restored.modules] == ["m1", "m2"]


class TestStaticTopologyProvider:
    @pytest.mark.asyncio
    async def test_returns_registered(self, course) -> None:
        provider = StaticTopologyProvider([course])

        assert isinstance(provider, TopologyProvider)
        assert await provider.get_topology(COURSE_ID) is course

    @pytest.mark.asyncio
    async def test_unknown_course_is_not_retryable(self) -> None:
        provider = StaticTopologyProvider()

        with pytest.raises(TopologyLookupError) as exc_info:
            await provider.get_topology("nope")

        assert exc_info.value.code == "course_not_found"
        assert exc_info.value.retryable is False


# ==============================================================================
# Cassandra
# ==============================================================================


@pytest.fixture
def mock_session():
    """Mock Cassandra session."""
    session = Mock(spec=Session)
    session.prepare = Mock(side_effect=lambda query: Mock(name="prepared"))
    session.aexecute = AsyncMock()
    return session


class TestCassandraTopologyProvider:
    @pytest.mark.asyncio
    async def test_assembles_topology(self, mock_session) -> None:
        provider = CassandraTopologyProvider(mock_session, "test_keyspace")
        lessons = {"m1": ["l1", "l2"], "m2": ["l3"]}

        async def aexecute(statement, params):
            if statement is provider._get_course:
                return Mock(one=Mock(return_value=SimpleNamespace(title="Intro")))
            if statement is provider._get_course_modules:
                return [SimpleNamespace(module_id=m) for m in lessons]
            return [SimpleNamespace(lesson_id=lid) for lid in lessons[params[0]]]

        mock_session.aexecute.side_effect = aexecute

        topology = await provider.get_topology(COURSE_ID)

        assert topology == CourseTopology.build(COURSE_ID, lessons, "Intro")

    @pytest.mark.asyncio
    async def test_unknown_course(self, mock_session) -> None:
        provider = CassandraTopologyProvider(mock_session, "test_keyspace")
        mock_session.aexecute.return_value = Mock(one=Mock(return_value=None))

        with pytest.raises(TopologyLookupError) as exc_info:
            await provider.get_topology(COURSE_ID)

        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_driver_error_is_retryable(self, mock_session) -> None:
        provider = CassandraTopologyProvider(mock_session, "test_keyspace")
        mock_session.aexecute.side_effect = NoHostAvailable("no hosts", {})

        with pytest.raises(TopologyLookupError) as exc_info:
            await provider.get_topology(COURSE_ID)

        assert exc_info.value.code == "topology_unavailable"
        assert exc_info.value.retryable is True


# ==============================================================================
# Redis cache
# ==============================================================================


@pytest.fixture
def mock_redis():
    """Mock Redis client."""
    redis_mock = AsyncMock()
    redis_mock.get = AsyncMock(return_value=None)
    redis_mock.setex = AsyncMock(return_value=True)
    redis_mock.delete = AsyncMock(return_value=1)
    return redis_mock


@pytest.fixture
def inner(course):
    provider = Mock()
    provider.get_topology = AsyncMock(return_value=course)
    return provider


class TestCachedTopologyProvider:
    @pytest.mark.asyncio
    async def test_miss_populates_cache(self, inner, mock_redis, course) -> None:
        provider = CachedTopologyProvider(inner, mock_redis, ttl_seconds=60)

        assert await provider.get_topology(COURSE_ID) == course

        inner.get_topology.assert_awaited_once_with(COURSE_ID)
        key, ttl, payload = mock_redis.setex.call_args.args
        assert key == "topology:course-1"
        assert ttl == 60
        assert orjson.loads(payload) == course.to_dict()

    @pytest.mark.asyncio
    async def test_hit_skips_provider(self, inner, mock_redis, course) -> None:
        mock_redis.get.return_value = orjson.dumps(course.to_dict())
        provider = CachedTopologyProvider(inner, mock_redis)

        assert await provider.get_topology(COURSE_ID) == course

        inner.get_topology.assert_not_awaited()
        mock_redis.setex.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_redis_down_falls_through(self, inner, mock_redis, course) -> None:
        mock_redis.get.side_effect = RedisConnectionError("down")
        mock_redis.setex.side_effect = RedisConnectionError("down")
        provider = CachedTopologyProvider(inner, mock_redis)

        assert await provider.get_topology(COURSE_ID) == course
        inner.get_topology.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_provider_errors_are_not_cached(self, inner, mock_redis) -> None:
        inner.get_topology.side_effect = TopologyLookupError()
        provider = CachedTopologyProvider(inner, mock_redis)

        with pytest.raises(TopologyLookupError):
            await provider.get_topology(COURSE_ID)

        mock_redis.setex.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalidate(self, inner, mock_redis) -> None:
        provider = CachedTopologyProvider(inner, mock_redis)

        await provider.invalidate(COURSE_ID)

        mock_redis.delete.assert_awaited_once_with("topology:course-1")
