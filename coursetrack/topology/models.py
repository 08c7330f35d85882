"""Course topology: ordered modules, each with ordered lessons.

Topology is authored elsewhere and read-only here. The authoring tables are
declared so a fresh keyspace can be bootstrapped for reads.
"""

from dataclasses import dataclass, field
from typing import Any


def lesson_key(module_id: str, lesson_id: str) -> str:
    """Key identifying a lesson inside a course (``moduleId_lessonId``)."""
    return f"{module_id}_{lesson_id}"


@dataclass(frozen=True, slots=True)
class ModuleTopology:
    module_id: str
    lesson_ids: tuple[str, ...] = ()

    @property
    def lesson_keys(self) -> tuple[str, ...]:
        return tuple(lesson_key(self.module_id, lid) for lid in self.lesson_ids)


@dataclass(frozen=True, slots=True)
class CourseTopology:
    course_id: str
    course_name: str = ""
    modules: tuple[ModuleTopology, ...] = field(default_factory=tuple)

    @property
    def total_lessons(self) -> int:
        return sum(len(m.lesson_ids) for m in self.modules)

    @property
    def lesson_keys(self) -> frozenset[str]:
        return frozenset(key for m in self.modules for key in m.lesson_keys)

    def get_module(self, module_id: str) -> ModuleTopology | None:
        for module in self.modules:
            if module.module_id == module_id:
                return module
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "course_id": self.course_id,
            "course_name": self.course_name,
            "modules": [
                {"module_id": m.module_id, "lesson_ids": list(m.lesson_ids)}
                for m in self.modules
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CourseTopology":
        return cls(
            course_id=data["course_id"],
            course_name=data.get("course_name") or "",
            modules=tuple(
                ModuleTopology(
                    module_id=m["module_id"],
                    lesson_ids=tuple(m.get("lesson_ids") or ()),
                )
                for m in data.get("modules") or ()
            ),
        )

    @classmethod
    def build(
        cls,
        course_id: str,
        modules: dict[str, list[str]],
        course_name: str = "",
    ) -> "CourseTopology":
        """Build a topology from an ordered ``{module_id: [lesson_id, ...]}``."""
        return cls(
            course_id=course_id,
            course_name=course_name,
            modules=tuple(
                ModuleTopology(module_id=mid, lesson_ids=tuple(lessons))
                for mid, lessons in modules.items()
            ),
        )


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

TOPOLOGY_TABLES_CQL = [
    """
    CREATE TABLE IF NOT EXISTS {keyspace}.courses (
        id TEXT PRIMARY KEY,
        title TEXT,
        status TEXT,
        updated_at TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS {keyspace}.course_modules (
        course_id TEXT,
        position INT,
        module_id TEXT,
        PRIMARY KEY (course_id, position, module_id)
    ) WITH CLUSTERING ORDER BY (position ASC, module_id ASC)
    """,
    """
    CREATE TABLE IF NOT EXISTS {keyspace}.module_lessons (
        module_id TEXT,
        position INT,
        lesson_id TEXT,
        PRIMARY KEY (module_id, position, lesson_id)
    ) WITH CLUSTERING ORDER BY (position ASC, lesson_id ASC)
    """,
]
