"""
Personal Finance Tracker - Source Package

Records income and expense transactions, splits shared bills with
friends, applies income allocation rules and aggregates monthly
dashboards.

DESIGN PRINCIPLES:
1. Money is fixed-point Decimal, never float
2. Validate before writing, write atomically
3. Fail visibly with the raw error message
4. Every user action is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Personal Finance Tracker Team"
