"""
EazyBooks - Core Package

Feature gating, role guards and bookkeeping summaries for a
small-business accounting application.

DESIGN PRINCIPLES:
1. Access decisions are pure functions of an explicit identity
2. Fail closed: unknown features and broken sessions mean "denied"
3. Aggregations never touch storage, they fold fetched records
4. Every denial and every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "EazyBooks Team"
