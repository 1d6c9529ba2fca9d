"""
Budget Strategist - Source Package

A household budget forecasting and rule-classification engine behind a
chat record-keeping assistant.

DESIGN PRINCIPLES:
1. The engine is pure: forecasting, tiers, streaks and badges do no I/O
2. Randomness is injected, so every forecast is reproducible under test
3. Every conditional write is compare-and-swap
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Budget Strategist Team"
