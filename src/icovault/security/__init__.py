"""
icovault Security Module

Threshold (N-of-M) signer authorization for program operations.
"""

__all__ = []
