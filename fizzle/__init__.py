"""
Fizzle - LLM-Narrated Card Battle Engine

A deterministic state-transition engine for a two-player card game whose
card effects and creature decisions are proposed at runtime by a language
model. The engine provides:
- Canonical game state
- Application of proposed state changes with invariant enforcement
- Turn and combat sequencing
- Delayed/persistent effect lifecycle
"""

__version__ = "0.1.0"
