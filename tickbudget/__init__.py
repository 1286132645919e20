"""
tickbudget - Source Package

Recurring budget items turned into a monthly checklist of payments.

DESIGN PRINCIPLES:
1. Rules are templates, occurrences are history
2. Generating a month twice never creates anything twice
3. History is never rewritten by a rule edit
4. Every state change is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "tickbudget Team"
