"""
Jobs infrastructure for background asset processing.

This package provides the job queue core:
- Postgres-backed queue claimed with a conditional status update
- Registry-based pluggable handlers
- Fixed-delay retries bounded per job, then permanent failure
- Failure escalation onto the asset version a job refers to
"""
