"""
icovault Core Module

Core functionality shared by every operation:
- Constants and environment-driven configuration
- Typed exception hierarchy and structured logging
- Keyed record store and binary record codec
- Instruction types, dispatch processor and atomic runtime
"""

__all__ = []
