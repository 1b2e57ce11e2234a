"""
EI Prep Assessment Engine

Session engine for emotional-intelligence practice tests:
1. Heterogeneous question types with consensus-weighted answer keys
2. Forward-only timed attempts with detached persistence
3. Deterministic scoring with a fixed per-question weight
4. Read-only review of completed attempts, including legacy sessions

The SQL collaborator lives in ``eiprep.assessments.sql_repository`` and is
imported explicitly, so the in-memory engine works without a database.
"""

__version__ = "0.1.0"
