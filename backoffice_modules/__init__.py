"""
backoffice_modules -- business modules.

Each module follows the same layout:

    models.py     enums and frozen DTOs (no I/O)
    orm.py        SQLAlchemy persistence models
    workflows.py  state machines (where the entity has a lifecycle)
    service.py    the service class owning the module's operations

Modules may import the kernel, the engines and sibling modules; nothing in
the kernel or the engines imports from here.
"""
