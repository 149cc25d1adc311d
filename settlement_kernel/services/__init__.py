"""Write-side kernel services (flush-only)."""

from settlement_kernel.services.audit_flag_service import AuditFlagService
from settlement_kernel.services.base import BaseService
from settlement_kernel.services.shift_service import ShiftService

__all__ = ["AuditFlagService", "BaseService", "ShiftService"]
