from .resolver import (
    TenantBinding,
    BindingStatus,
    resolve_binding,
    verify_binding,
    describe_tenant,
    extract_tenant_id,
)

__all__ = [
    'TenantBinding',
    'BindingStatus',
    'resolve_binding',
    'verify_binding',
    'describe_tenant',
    'extract_tenant_id',
]
