"""
Tenant -- Immutable tenant scope attached to every data operation.

Responsibility:
    Carries the caller's tenant id and role from the identity resolver
    (outside this package) down to the tenant transaction executor.

Architecture position:
    Kernel > Domain -- pure value object, zero I/O, no dependencies.

Invariants enforced:
    - Explicit scoping: there is no ambient "current tenant".  Every
      data-access call receives a TenantContext argument.
    - Totality: normalize_tenant_context() always yields a context; the
      fallback tenant exists only for unauthenticated bootstrap paths.

Failure modes:
    - TenantContextError if a TenantContext is constructed directly with an
      empty tenant_id or role.
"""

from __future__ import annotations

from dataclasses import dataclass

from inventory_kernel.exceptions import TenantContextError

FALLBACK_TENANT_ID = "00000000-0000-0000-0000-000000000000"
DEFAULT_ROLE = "user"


@dataclass(frozen=True, slots=True)
class TenantContext:
    """
    Tenant id and role for one request or operation.

    Contract:
        Constructed once per request from the authenticated identity and
        passed explicitly to every LedgerStore / executor call.

    Guarantees:
        - Immutable and hashable.
        - tenant_id and role are non-empty strings.
    """

    tenant_id: str
    role: str = DEFAULT_ROLE

    def __post_init__(self) -> None:
        if not self.tenant_id or not str(self.tenant_id).strip():
            raise TenantContextError("tenant_id", "must be a non-empty string")
        if not self.role or not str(self.role).strip():
            raise TenantContextError("role", "must be a non-empty string")

    @property
    def is_fallback(self) -> bool:
        """True when this context uses the bootstrap fallback tenant."""
        return self.tenant_id == FALLBACK_TENANT_ID

    @classmethod
    def fallback(cls) -> TenantContext:
        return cls(tenant_id=FALLBACK_TENANT_ID, role=DEFAULT_ROLE)


def normalize_tenant_context(
    tenant_id: str | None,
    role: str | None,
) -> TenantContext:
    """Build a TenantContext from raw identity values.

    Missing tenant ids map to FALLBACK_TENANT_ID and missing roles to
    DEFAULT_ROLE.  Authenticated multi-tenant traffic always supplies a
    tenant id, so the fallback is only reached from system bootstrap paths.
    """
    return TenantContext(
        tenant_id=str(tenant_id) if tenant_id else FALLBACK_TENANT_ID,
        role=str(role) if role else DEFAULT_ROLE,
    )
