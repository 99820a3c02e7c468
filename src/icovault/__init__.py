"""
icovault - Authorization, Timelock and Vesting Engine

Governs the controlled release of a capped token supply to ICO investors
and the authorization of privileged treasury movements.

Main Components:
- Security: N-of-M threshold key sets with Routine/Sensitive/Critical levels
- Blockchain: vesting schedule engine and per-investor investment ledgers
- Wallet: timelock queue for delayed, exactly-once privileged operations
- Treasury: internal wallets and the token ledger collaborator boundary
- Core: record store, instruction dispatch and atomic execution runtime
"""

__version__ = "0.1.0"
__author__ = "icovault Development Team"

__all__ = []
