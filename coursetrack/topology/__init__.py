from .models import TOPOLOGY_TABLES_CQL, CourseTopology, ModuleTopology, lesson_key
from .provider import (
    CachedTopologyProvider,
    CassandraTopologyProvider,
    StaticTopologyProvider,
    TopologyProvider,
)


__all__ = [
    "TOPOLOGY_TABLES_CQL",
    "CachedTopologyProvider",
    "CassandraTopologyProvider",
    "CourseTopology",
    "ModuleTopology",
    "StaticTopologyProvider",
    "TopologyProvider",
    "lesson_key",
]
