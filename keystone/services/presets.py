"""
Industry presets and hard-coded module defaults
"""

from typing import Any, Dict

ModuleConfig = Dict[str, Any]

# Always-present base layer
DEFAULTS: Dict[str, ModuleConfig] = {
    "inventory": {"requireBatches": False, "pickingPolicy": "FIFO", "bomEnabled": False},
    "invoices": {"taxMode": "none", "rounding": "none"},
    "subtenants": {"max": 1},
}

# Selected by Tenant.industry
PRESETS: Dict[str, Dict[str, ModuleConfig]] = {
    "pharmacy": {
        "inventory": {"requireBatches": True, "pickingPolicy": "FEFO", "bomEnabled": False},
        "invoices": {"taxMode": "vat", "rounding": "line"},
        "subtenants": {"max": 3},
    },
    "factory": {
        "inventory": {"requireBatches": False, "pickingPolicy": "FIFO", "bomEnabled": True},
        "invoices": {"taxMode": "gst", "rounding": "total"},
        "subtenants": {"max": 5},
    },
    "services": {
        "inventory": {"requireBatches": False, "pickingPolicy": "NONE", "bomEnabled": False},
        "invoices": {"taxMode": "none", "rounding": "none"},
        "subtenants": {"max": 2},
    },
}
