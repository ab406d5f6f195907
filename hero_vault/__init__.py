"""
Hero Vault - Source Package

The core of a gamified personal finance tracker: deposits earn progress
points, points raise levels and skills, and the whole player record is
kept in sync with a remote document store.

DESIGN PRINCIPLES:
1. Every change is a pure transition: (state, action) -> new state
2. Fail early, fail visibly
3. No silent merges of someone else's record
4. Every session transition and save outcome is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Hero Vault Team"
