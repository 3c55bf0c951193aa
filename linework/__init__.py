"""
Linework - curriculum engine for freehand drawing instruction.

Skill trees of prerequisite-gated lessons, a three-phase lesson state
machine, a geometric validation rule engine for stroke data, and a
progress ledger for XP, streaks and recommendations.
"""

__version__ = "0.3.0"
