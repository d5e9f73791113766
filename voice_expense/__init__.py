"""
Voice Expense Logger - Source Package

Turns a spoken sentence describing a purchase into a structured expense
record, and drives the speech capture session that produces that sentence.

DESIGN PRINCIPLES:
1. Extraction is deterministic and side-effect free
2. A failed parse is an expected outcome, not a crash
3. Only one capture session may exist at a time
4. Every capture and extraction step is auditable
5. Reference data (currencies) is injected, never global
"""

__version__ = "1.0.0"
__author__ = "Voice Expense Logger Team"
