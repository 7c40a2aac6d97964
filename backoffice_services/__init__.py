"""
backoffice_services -- cross-module services.

Architecture:
    Top-level package above ``backoffice_modules``; may import from every
    layer below it.
"""

from backoffice_services.backup_service import BackupService, DatabaseBackup

__all__ = ["BackupService", "DatabaseBackup"]
