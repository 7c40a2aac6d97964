"""
Module ORM Registry (``backoffice_modules._orm_registry``).

Ensures every SQLAlchemy model is imported so that ``Base.metadata``
contains all table definitions before ``create_all()`` runs.  Used by
``backoffice_kernel.db.engine.create_tables`` and by ``tests/conftest.py``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``backoffice_modules.*.orm`` module.

    Idempotent -- repeated calls are harmless.
    """
    # Kernel tables first (sequence counters, system logs)
    import backoffice_kernel.services.audit_service  # noqa: F401
    import backoffice_kernel.services.sequence_service  # noqa: F401
    # fmt: off
    import backoffice_modules.parties.orm  # noqa: F401
    import backoffice_modules.catalog.orm  # noqa: F401
    import backoffice_modules.pricing.orm  # noqa: F401
    import backoffice_modules.sales.orm  # noqa: F401
    import backoffice_modules.commissions.orm  # noqa: F401
    import backoffice_modules.ar.orm  # noqa: F401
    import backoffice_modules.ap.orm  # noqa: F401
    import backoffice_modules.cash.orm  # noqa: F401
    # fmt: on


def create_all_tables() -> None:
    """Register all ORM models, then create every table on the active engine."""
    from backoffice_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables()
