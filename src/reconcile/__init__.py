"""
Reconciliation of scanned folders with the file inventory.
"""

from .eligibility import is_deprioritized, is_eligible
from .reconciler import RELOCATION_GLOBAL, RELOCATION_SCOPED, FileReconciler, ReconcileResult

__all__ = [
    "RELOCATION_GLOBAL",
    "RELOCATION_SCOPED",
    "FileReconciler",
    "ReconcileResult",
    "is_deprioritized",
    "is_eligible",
]
