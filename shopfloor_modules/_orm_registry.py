"""
Module ORM Registry (``shopfloor_modules._orm_registry``).

Responsibility
--------------
Ensure every module-level SQLAlchemy ORM model is imported so that
``Base.metadata`` contains its table before tables are created, and
provide ``create_all_tables()`` -- the one entry point scripts and
``tests/conftest.py`` use to get a complete schema.

Architecture position
---------------------
**Modules layer** -- utility.  Imports sibling ``shopfloor_modules``
packages and ``shopfloor_kernel.db.engine`` (allowed: modules -> kernel).
MUST NOT be imported by ``shopfloor_kernel``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``shopfloor_modules.*.orm`` module.  Idempotent."""
    import shopfloor_kernel.models  # noqa: F401
    import shopfloor_kernel.services.sequence_service  # noqa: F401
    # fmt: off
    import shopfloor_modules.inventory.orm  # noqa: F401
    import shopfloor_modules.purchasing.orm  # noqa: F401
    # fmt: on


def create_all_tables() -> None:
    """
    Create kernel + module tables and register the append-only listeners.

    Preconditions:
        Engine must be initialized via ``init_engine_from_url()``.
    """
    from shopfloor_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables()
