"""Catalog Module (``backoffice_modules.catalog``): products and customization options."""

from backoffice_modules.catalog.service import CatalogService

__all__ = ["CatalogService"]
