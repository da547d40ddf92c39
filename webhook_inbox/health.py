"""
Liveness and readiness checks.
"""
from typing import Dict, Any
import psutil
from .event_models import utc_now
from .logging import get_logger
from .stores.base import EventStore

logger = get_logger()


class HealthChecker:
    """
    Health checker for the webhook inbox.

    Provides:
    - Liveness checks (is the service running?)
    - Readiness checks (can the store accept writes?)
    """

    def __init__(
        self,
        store: EventStore,
        service_name: str = "webhook-inbox",
        version: str = "0.1.0",
        disk_path: str = ".",
    ):
        self.store = store
        self.service_name = service_name
        self.version = version
        self.disk_path = disk_path

    def liveness(self) -> Dict[str, Any]:
        """Liveness flag; never touches the store."""
        return {
            "ok": True,
            "service": self.service_name,
            "version": self.version,
            "timestamp": utc_now(),
        }

    async def readiness(self) -> Dict[str, Any]:
        """
        Readiness check - store reachability plus disk space.

        Returns:
            dict: Readiness status with detailed check results
        """
        checks = {}
        overall_status = "ready"

        store_check = await self._check_store()
        checks["store"] = store_check
        if store_check["status"] == "error":
            overall_status = "not_ready"

        disk_check = self._check_disk_space()
        checks["disk_space"] = disk_check
        if disk_check["status"] == "error":
            overall_status = "not_ready"

        return {
            "status": overall_status,
            "service": self.service_name,
            "version": self.version,
            "timestamp": utc_now(),
            "checks": checks,
        }

    async def _check_store(self) -> Dict[str, Any]:
        healthy = await self.store.health_check()
        if healthy:
            return {"status": "ok", "backend": self.store.name}
        return {"status": "error", "backend": self.store.name}

    def _check_disk_space(self, threshold_gb: float = 1.0) -> Dict[str, Any]:
        """
        Check available disk space where event data is written.

        Args:
            threshold_gb: Minimum available disk space in GB (default: 1.0)
        """
        try:
            disk = psutil.disk_usage(self.disk_path)
        except OSError as e:
            logger.warning("disk_health_check_failed", error=str(e), path=self.disk_path)
            return {"status": "error", "error": str(e)}

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
