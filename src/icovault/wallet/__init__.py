"""
icovault Wallet Module

Timelock queue for privileged operations that must mature before execution.
"""

__all__ = []
