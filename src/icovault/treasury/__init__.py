"""
icovault Treasury Module

Internal wallets, initial supply distribution and the token ledger boundary.
"""

__all__ = []
