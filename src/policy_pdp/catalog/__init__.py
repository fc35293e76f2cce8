"""Policy and role administration.

- catalog.py: PolicyCatalog (CRUD, assignments, templates)
- validation.py: PolicyValidator
- templates.py: template parameter checks and expansion
"""

from policy_pdp.catalog.catalog import PolicyCatalog
from policy_pdp.catalog.validation import PolicyValidator, is_valid_resource_pattern

__all__ = [
    "PolicyCatalog",
    "PolicyValidator",
    "is_valid_resource_pattern",
]
