"""Reconcile passes from the source of record onto the board.

A pass runs three phases in order under one run lock: onboarding of newly
eligible cases, content reconciliation of mapped cases, and ordered hearing
propagation. Phases share a ``RunContext`` carrying the run's counters and
circuit breaker; all I/O goes through the ports in ``docketsync.domain.ports``.
"""

from __future__ import annotations

from .bootstrap import BootstrapResult, bootstrap_new_cases
from .columns import (
    DropdownAction,
    apply_dropdown_labels,
    build_column_values,
    build_item_name,
    resolve_dropdown_action,
)
from .context import (
    AllowList,
    HearingColumnIds,
    RunContext,
    RunReport,
    SyncSettings,
    UnitOfWorkFactory,
)
from .hearing_pass import HearingPassResult, sync_hearings
from .reconcile import ReconcileResult, reconcile_mapped_cases
from .runner import SyncRunner, new_run_id

__all__ = [
    "AllowList",
    "BootstrapResult",
    "DropdownAction",
    "HearingColumnIds",
    "HearingPassResult",
    "ReconcileResult",
    "RunContext",
    "RunReport",
    "SyncRunner",
    "SyncSettings",
    "UnitOfWorkFactory",
    "apply_dropdown_labels",
    "bootstrap_new_cases",
    "build_column_values",
    "build_item_name",
    "new_run_id",
    "reconcile_mapped_cases",
    "resolve_dropdown_action",
    "sync_hearings",
]
