"""
AudioScholar Backend — Resilient External-Call Core
====================================================

What: Marks the `audioscholar` directory as a Python package.
Who:  Imported by the summarization/conversion workflows and by pytest.

Architecture Note:
    The package is layered leaf-first:

    ┌─────────────────────────────────────┐
    │   Consumers (ConvertAPI, Gemini)    │  ← speak HTTP, report outcomes
    ├─────────────────────────────────────┤
    │  Executors (infinite retry, model   │  ← retry / rotation policy
    │  hierarchy rotation)                │
    ├─────────────────────────────────────┤
    │  Key Rotation Manager               │  ← get_key / report_* facade
    ├─────────────────────────────────────┤
    │  Key Pool + Cooldown Registry       │  ← shared, thread-safe state
    └─────────────────────────────────────┘

    Lower layers never raise except on configuration errors; the executors
    classify failures and either absorb them (rotate, back off) or propagate.
"""

__version__ = "1.0.0"
