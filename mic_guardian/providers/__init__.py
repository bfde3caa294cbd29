"""Attribution providers: report which clients were recently active."""

from .base import AttributionProvider
from .process_activity import ProcessActivityProvider

__all__ = ["AttributionProvider", "ProcessActivityProvider"]
