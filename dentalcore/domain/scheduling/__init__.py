"""Scheduling domain - availability, slot ledger and booking"""

from .router import router

__all__ = ["router"]
