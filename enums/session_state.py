"""
Enumerations for the trade lifecycle.

A user's in-memory session walks ``idle -> awaiting_amount -> awaiting_target
-> monitoring`` and falls back to ``idle`` on completion, error or cancel.
Persisted trades are ``pending`` until liquidation marks them ``completed``.
"""

from __future__ import annotations

from enum import Enum


class SessionState(str, Enum):
    """Possible states of a user's trade-intake session."""

    IDLE = "idle"
    AWAITING_AMOUNT = "awaiting_amount"
    AWAITING_TARGET = "awaiting_target"
    MONITORING = "monitoring"


class TradeStatus(str, Enum):
    """Lifecycle of a persisted trade record."""

    PENDING = "pending"
    COMPLETED = "completed"
    # reservado: ningún flujo marca hoy un trade como fallido
    FAILED = "failed"
