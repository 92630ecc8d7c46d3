"""
Readiness checks for the trace service.
"""
import os
from typing import Dict, Any
import psutil

from .event_models import now_iso
from .logging import get_logger
from .stats.store import AggregationStore
from .storage.persistence import SnapshotPersistence

logger = get_logger()


class HealthChecker:
    """
    Health checker for the trace service.

    Liveness is answered by the /health route itself; this class covers
    readiness (can the service record traffic?).
    """

    def __init__(self, store: AggregationStore, persistence: SnapshotPersistence):
        self.store = store
        self.persistence = persistence

    def readiness(self) -> Dict[str, Any]:
        """
        Readiness check.

        Checks:
        - Snapshot loaded
        - Data directory writable
        - Disk space available for the data directory
        - Memory availability

        Returns:
            dict: Readiness status with detailed check results
        """
        checks = {
            "snapshot": {"status": "ok" if self.store.loaded else "error", "loaded": self.store.loaded},
            "data_dir": self._check_data_dir(),
            "disk_space": self._check_disk_space(),
            "memory": self._check_memory(),
        }
        ready = all(check["status"] != "error" for check in checks.values())
        return {
            "ok": ready,
            "status": "ready" if ready else "not_ready",
            "now": now_iso(),
            "checks": checks,
        }

    def _check_data_dir(self) -> Dict[str, Any]:
        path = self.persistence.data_dir
        writable = path.is_dir() and os.access(path, os.W_OK)
        return {
            "status": "ok" if writable else "error",
            "path": str(path),
            "writable": writable,
        }

    def _check_disk_space(self, threshold_gb: float = 1.0) -> Dict[str, Any]:
        """
        Check available disk space on the volume holding the data directory.

        Args:
            threshold_gb: Minimum available disk space in GB (default: 1.0)

        Returns:
            dict: Disk space health check result
        """
        path = self.persistence.data_dir
        target = path if path.exists() else path.anchor
        try:
            disk = psutil.disk_usage(str(target))
            available_gb = disk.free / (1024**3)

            if available_gb < threshold_gb:
                status = "error"
            elif available_gb < threshold_gb * 2:
                status = "warning"
            else:
                status = "ok"

            return {
                "status": status,
                "available_gb": round(available_gb, 2),
                "total_gb": round(disk.total / (1024**3), 2),
                "used_percent": disk.percent,
            }

        except OSError as e:
            logger.warning("disk_health_check_failed", error=str(e))
            return {
                "status": "error",
                "error": str(e),
            }

    def _check_memory(self, threshold_mb: float = 50.0) -> Dict[str, Any]:
        """
        Check available memory.

        Args:
            threshold_mb: Minimum available memory in MB (default: 50.0)

        Returns:
            dict: Memory health check result
        """
        memory = psutil.virtual_memory()
        available_mb = memory.available / (1024**2)

        if available_mb < threshold_mb:
            status = "error"
        elif available_mb < threshold_mb * 2:
            status = "warning"
        else:
            status = "ok"

        return {
            "status": status,
            "available_mb": round(available_mb, 2),
            "total_mb": round(memory.total / (1024**2), 2),
            "used_percent": memory.percent,
        }
