"""
PayMaster - Routers Package

FastAPI route handlers.

Routers:
- payroll: Payroll runs (generate, preview, recalculate, vacation attach)
- loans: Employee loans (create, schedule, manual payments, reconciliation)
"""

from app.routers import (
    payroll,
    loans,
)

__all__ = [
    "payroll",
    "loans",
]
