from .persistence import SnapshotPersistence

__all__ = ["SnapshotPersistence"]
