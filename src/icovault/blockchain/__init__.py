"""
icovault Blockchain Module

Vesting schedule engine and the per-investor investment ledger that tracks
purchases and cumulative releases.
"""

__all__ = []
