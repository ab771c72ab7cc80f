from farewatch.db.base import Base, JSONType
from farewatch.db.tables import ALL_TABLE_NAMES, WATCH_TABLE_NAMES

__all__ = ["Base", "JSONType", "ALL_TABLE_NAMES", "WATCH_TABLE_NAMES"]
