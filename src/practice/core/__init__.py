"""Core logic - domain records and scheduling.

Modules:
- models: Domain dataclasses (Problem, Contest, Todo, Flashcard, ...)
- spaced_repetition: Review interval scheduling and analytics
- potd_cleanup: Problem-of-the-Day retention
- company_stats: Per-company practice statistics
"""

__all__ = [
    "models",
    "spaced_repetition",
    "potd_cleanup",
    "company_stats",
]
