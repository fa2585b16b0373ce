"""
Module catalog
"""

from typing import List

import structlog

from keystone.core.repository import Repository
from keystone.models import Module

logger = structlog.get_logger(__name__)

# Keys are stable, lowercase-kebab
MODULE_CATALOG = [
    {"key": "products", "name": "Products/Services", "description": "Catalog of items and services"},
    {"key": "customers", "name": "Customers", "description": "Customer directory"},
    {"key": "suppliers", "name": "Suppliers", "description": "Supplier directory"},
    {"key": "invoices", "name": "Invoices", "description": "Sales invoices"},
    {"key": "payments", "name": "Payments", "description": "Record payments (cash/bank)"},
    {"key": "expenses", "name": "Expenses", "description": "Track business expenses"},
    {"key": "inventory", "name": "Inventory", "description": "Stock tracking and adjustments"},
    {"key": "reports", "name": "Reports", "description": "Basic analytics and exports"},
    {"key": "audit-log", "name": "Audit Log", "description": "Changes and admin actions"},
    {"key": "subtenants", "name": "Sub-tenants", "description": "Child workspaces under a tenant"},
]


def seed_modules(repo: Repository) -> List[Module]:
    """Upsert the catalog; safe to run repeatedly"""
    modules = []
    with repo.transaction():
        for entry in MODULE_CATALOG:
            module = repo.get_module(entry["key"])
            if module is None:
                module = Module(**entry)
            else:
                module.name = entry["name"]
                module.description = entry["description"]
            repo.add(module)
            modules.append(module)

    logger.info(f"Modules upserted: {len(modules)}")
    return modules
