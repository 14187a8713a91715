"""
Governance Layer - Attempt History and Override Protocol

Submodules:
    attempt_tracker.py → Retry state machine and override checks

Author: Shubham Singh
Date: December 2025
"""

from clinical_validation.governance.attempt_tracker import AttemptTracker

__all__ = ["AttemptTracker"]
