"""PoW list reconciliation."""

from . import exceptions, reconcile  # noqa: F401
from .models import PowEntryIn, PowRecord  # noqa: F401
from .operations import CreateOp, DeleteOp, ReconcilePlan, UpdateOp  # noqa: F401
from .service import PowSyncService, get_pow_service  # noqa: F401
