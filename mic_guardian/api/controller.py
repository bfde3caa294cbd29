"""
API Controller - thin async facade over MicrophoneGuardian for the routes.
"""

from typing import Any, Dict, Optional

from mic_guardian import __version__
from mic_guardian.core.guardian import MicrophoneGuardian
from mic_guardian.core.logging_utils import get_module_logger


logger = get_module_logger("APIController")


class APIController:

    def __init__(self, guardian: MicrophoneGuardian):
        self.guardian = guardian

    # ------------------------------------------------------------------
    # System

    async def health_check(self) -> Dict[str, Any]:
        return {
            "status": "healthy",
            "version": __version__,
            "monitoring": self.guardian.is_running,
        }

    async def get_status(self) -> Dict[str, Any]:
        return self.guardian.status()

    # ------------------------------------------------------------------
    # Session history

    async def list_sessions(self, limit: Optional[int] = None) -> Dict[str, Any]:
        records = self.guardian.history(limit)
        return {
            "sessions": [record.to_dict() for record in records],
            "count": len(records),
            "capacity": self.guardian.session_log.capacity,
        }

    async def get_session(self, session_id: int) -> Optional[Dict[str, Any]]:
        for record in self.guardian.history():
            if record.id == session_id:
                return record.to_dict()
        return None

    async def clear_sessions(self) -> Dict[str, Any]:
        cleared = self.guardian.clear_history()
        return {"success": True, "cleared": cleared}

    # ------------------------------------------------------------------
    # Monitoring lifecycle

    async def start_monitoring(self) -> Dict[str, Any]:
        if self.guardian.is_running:
            return {"success": True, "monitoring": True, "message": "Monitoring already active"}

        started = await self.guardian.start()
        if not started:
            logger.warning("Monitoring start requested via API failed")
            return {"success": False, "monitoring": False, "error": "Failed to start monitoring"}
        return {"success": True, "monitoring": True, "message": "Monitoring started"}

    async def stop_monitoring(self) -> Dict[str, Any]:
        stopped = await self.guardian.stop()
        return {
            "success": True,
            "monitoring": self.guardian.is_running,
            "message": "Monitoring stopped" if stopped else "Monitoring already inactive",
        }
