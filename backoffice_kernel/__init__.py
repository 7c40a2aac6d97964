"""
Back-office Kernel

Shared foundation for the order, commission and reconciliation core:
- Fixed-point money arithmetic (2-decimal strings, half-up rounding)
- SQLAlchemy declarative base, engine and session scope
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging and a post-commit audit channel
- Locked-counter document numbering
"""

__version__ = "0.1.0"
