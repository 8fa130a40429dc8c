"""Billing domain - tariffs, insurance split and invoices"""

from .router import router

__all__ = ["router"]
