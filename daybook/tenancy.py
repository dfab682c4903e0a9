"""
Tenancy Module

Tenants are a fixed enumeration of organizational partitions. One sentinel
tenant, ``Personal``, holds individual (non-organizational) ledger use.
"""

from enum import Enum
from typing import Optional

from .errors import ValidationError


class Tenant(Enum):
    """Organizational partitions that scope data visibility"""
    TATA_NURSING = "TATANursing"
    DEAR_CARE = "Dearcare"
    DEAR_CARE_ACADEMY = "DearcareAcademy"
    PERSONAL = "Personal"


TENANT_VALUES = [t.value for t in Tenant]


def parse_tenant(value: Optional[str], required: bool = True) -> Optional[Tenant]:
    """
    Parse a tenant name into the enumeration.
    
    Raises:
        ValidationError: If the value is missing (when required) or unknown
    """
    if value is None or value == "":
        if required:
            raise ValidationError("tenant is required")
        return None
    if isinstance(value, Tenant):
        return value
    try:
        return Tenant(value)
    except ValueError:
        raise ValidationError(
            f"Invalid tenant. Must be one of: {', '.join(TENANT_VALUES)}"
        )
