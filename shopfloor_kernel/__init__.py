"""
Shopfloor Kernel

Shared infrastructure for the procurement core:
- SQLAlchemy base classes, engine and session utilities
- Typed exception hierarchy
- Structured JSON logging
- Injectable clock, locked-counter sequences, bounded retry
"""

__version__ = "0.1.0"
