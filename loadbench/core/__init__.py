"""Run orchestration, report canonicalization and result persistence."""
