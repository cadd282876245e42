"""
Production Kernel - Order Stage Workflow Engine

Tracks manufacturing orders through a fixed sequence of production stages:
- Sequential, year-scoped order codes
- Role x assignment authorization per stage
- Atomic approve-and-advance transitions under row locks
- Evidence references, notes and an append-only order event trail
"""

__version__ = "0.1.0"
