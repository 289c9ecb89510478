"""K2D store package.

Decomposes the store into focused modules:
- schema.py: Database schema version and SQL
- models.py: Typed row records (Session, Turn, SkillLifecycle, ProjectPhase, ...)
- core.py: Main K2DStore class with connection management
- kv.py: Run-to-run state in the config table
- sessions.py: Session operations
- turns.py: Turn persistence and turn-level queries
- lifecycle.py: Skill lifecycle and project phase operations
"""

from k2d.store.core import K2DStore
from k2d.store.models import (
    ProjectPhase,
    Session,
    SkillLifecycle,
    SkillUsageRecord,
    StoredFileChange,
    ToolCallStat,
    Turn,
)
from k2d.store.schema import REQUIRED_TABLES, SCHEMA_SQL, SCHEMA_VERSION

__all__ = [
    # Main class
    "K2DStore",
    # Data models
    "ProjectPhase",
    "Session",
    "SkillLifecycle",
    "SkillUsageRecord",
    "StoredFileChange",
    "ToolCallStat",
    "Turn",
    # Schema constants
    "REQUIRED_TABLES",
    "SCHEMA_SQL",
    "SCHEMA_VERSION",
]
