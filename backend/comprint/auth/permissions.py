from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Mapping, Optional

from comprint.core.roles import UserRole

ROLE_ADMIN = UserRole.ADMIN.value
ROLE_SALES = UserRole.SALES.value
ROLE_TECHNICIAN = UserRole.TECHNICIAN.value


@dataclass(frozen=True)
class Permission:
    # branches.*
    BRANCHES_READ: str = "branches.read"
    BRANCHES_WRITE: str = "branches.write"

    # catalog.* (product categories + products)
    CATALOG_READ: str = "catalog.read"
    CATALOG_WRITE: str = "catalog.write"

    # inventory.*
    INVENTORY_READ: str = "inventory.read"
    INVENTORY_WRITE: str = "inventory.write"
    INVENTORY_ADJUST: str = "inventory.adjust"

    # customers.*
    CUSTOMERS_READ: str = "customers.read"
    CUSTOMERS_WRITE: str = "customers.write"
    CUSTOMERS_DELETE: str = "customers.delete"

    # sales.*
    SALES_READ: str = "sales.read"
    SALES_WRITE: str = "sales.write"
    SALES_DELETE: str = "sales.delete"

    # commissions.*
    COMMISSIONS_READ: str = "commissions.read"
    COMMISSIONS_READ_ALL: str = "commissions.read_all"
    COMMISSIONS_WRITE: str = "commissions.write"
    COMMISSIONS_REPAIR: str = "commissions.repair"

    # service.*
    SERVICE_READ: str = "service.read"
    SERVICE_CREATE: str = "service.create"
    SERVICE_UPDATE: str = "service.update"
    SERVICE_DELETE: str = "service.delete"
    SERVICE_ASSIGN: str = "service.assign"
    SERVICE_CATEGORIES_WRITE: str = "service.categories.write"

    # users.*
    USERS_READ: str = "users.read"
    USERS_WRITE: str = "users.write"

    # reports.*
    REPORTS_READ: str = "reports.read"

    # wildcards (domain-level)
    BRANCHES_ALL: str = "branches.*"
    CATALOG_ALL: str = "catalog.*"
    INVENTORY_ALL: str = "inventory.*"
    CUSTOMERS_ALL: str = "customers.*"
    SALES_ALL: str = "sales.*"
    COMMISSIONS_ALL: str = "commissions.*"
    SERVICE_ALL: str = "service.*"
    USERS_ALL: str = "users.*"
    REPORTS_ALL: str = "reports.*"


PERM = Permission()

ROLE_BASE_PERMISSIONS: Mapping[str, FrozenSet[str]] = {
    ROLE_ADMIN: frozenset(
        {
            PERM.BRANCHES_ALL,
            PERM.CATALOG_ALL,
            PERM.INVENTORY_ALL,
            PERM.CUSTOMERS_ALL,
            PERM.SALES_ALL,
            PERM.COMMISSIONS_ALL,
            PERM.SERVICE_ALL,
            PERM.USERS_ALL,
            PERM.REPORTS_ALL,
        }
    ),
    ROLE_SALES: frozenset(
        {
            PERM.BRANCHES_READ,
            PERM.CATALOG_READ,
            PERM.INVENTORY_READ,
            PERM.INVENTORY_ADJUST,
            PERM.CUSTOMERS_ALL,
            PERM.SALES_READ,
            PERM.SALES_WRITE,
            # own rows only; read_all is admin's
            PERM.COMMISSIONS_READ,
            PERM.SERVICE_READ,
            PERM.SERVICE_CREATE,
            PERM.SERVICE_UPDATE,
        }
    ),
    ROLE_TECHNICIAN: frozenset(
        {
            PERM.BRANCHES_READ,
            PERM.CATALOG_READ,
            PERM.INVENTORY_READ,
            PERM.CUSTOMERS_READ,
            PERM.SALES_READ,
            PERM.COMMISSIONS_READ,
            # assigned requests only, see can_view_service_request()
            PERM.SERVICE_READ,
            PERM.SERVICE_UPDATE,
        }
    ),
}


def _normalize_role(role: str | None) -> str:
    return (role or "").strip().lower()


def effective_permissions(*, role: str | None) -> FrozenSet[str]:
    return ROLE_BASE_PERMISSIONS.get(_normalize_role(role), frozenset())


def _has_domain_wildcard(grants: FrozenSet[str], required: str) -> bool:
    if required in grants:
        return True
    idx = required.find(".")
    if idx <= 0:
        return False
    domain = required[:idx]
    return f"{domain}.*" in grants


def is_permitted(*, role: str | None, required: str, grants: Optional[FrozenSet[str]] = None) -> bool:
    if grants is None:
        grants = effective_permissions(role=role)
    return _has_domain_wildcard(grants, required)


# -----------------------------
# Service request field policy
# -----------------------------
SERVICE_REQUEST_FIELDS: FrozenSet[str] = frozenset(
    {
        "title",
        "description",
        "service_category_id",
        "customer_id",
        "priority",
        "status",
        "device_type",
        "device_brand",
        "device_model",
        "device_serial_number",
        "estimated_completion",
        "estimated_cost",
        "final_cost",
        "customer_notes",
        "internal_notes",
        "assigned_technician_id",
        "payment_status",
        "completed_date",
    }
)

# Changeable only by callers holding service.assign, whatever else they may edit.
ADMIN_ONLY_SERVICE_REQUEST_FIELDS: FrozenSet[str] = frozenset({"assigned_technician_id"})

TECHNICIAN_SERVICE_REQUEST_FIELDS: FrozenSet[str] = frozenset(
    {"status", "internal_notes", "final_cost", "completed_date"}
)

SERVICE_REQUEST_FIELD_POLICY: Mapping[str, FrozenSet[str]] = {
    ROLE_ADMIN: SERVICE_REQUEST_FIELDS,
    ROLE_SALES: SERVICE_REQUEST_FIELDS - ADMIN_ONLY_SERVICE_REQUEST_FIELDS,
    ROLE_TECHNICIAN: TECHNICIAN_SERVICE_REQUEST_FIELDS,
}


def allowed_service_request_fields(role: str | None) -> FrozenSet[str]:
    return SERVICE_REQUEST_FIELD_POLICY.get(_normalize_role(role), frozenset())


def disallowed_fields(role: str | None, requested: Iterable[str]) -> list[str]:
    """
    Fields in `requested` the role may not change, sorted for stable messages.
    A non-empty result means the whole update must be rejected.
    """
    allowed = allowed_service_request_fields(role)
    return sorted(set(requested) - allowed)


def can_view_service_request(*, role: str | None, user_id, assigned_technician_id) -> bool:
    if _normalize_role(role) == ROLE_TECHNICIAN:
        return assigned_technician_id is not None and assigned_technician_id == user_id
    return is_permitted(role=role, required=PERM.SERVICE_READ)


def can_edit_service_request(*, role: str | None, user_id, assigned_technician_id) -> bool:
    r = _normalize_role(role)
    if r in (ROLE_ADMIN, ROLE_SALES):
        return True
    if r == ROLE_TECHNICIAN:
        return assigned_technician_id is not None and assigned_technician_id == user_id
    return False


def can_manage_attachment(*, role: str | None, user_id, uploaded_by, assigned_technician_id) -> bool:
    """Admin, the uploader, or the technician assigned to the parent request."""
    r = _normalize_role(role)
    if r == ROLE_ADMIN:
        return True
    if uploaded_by is not None and uploaded_by == user_id:
        return True
    return r == ROLE_TECHNICIAN and assigned_technician_id is not None and assigned_technician_id == user_id
