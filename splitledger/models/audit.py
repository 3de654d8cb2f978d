"""
Audit Models for SplitLedger

Every significant ledger action is logged for audit purposes:
1. Traceability of who settled what, and when
2. Debugging information when a split does not reconcile
3. Ability to reconstruct how a balance was reached

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Write side
    SPLIT_COMPUTED = "split_computed"
    SPLIT_INPUT_REJECTED = "split_input_rejected"
    VALIDATION_PASSED = "validation_passed"
    VALIDATION_FAILED = "validation_failed"
    EXPENSE_COMMITTED = "expense_committed"
    EXPENSE_EDITED = "expense_edited"

    # Settlement
    SHARE_SETTLED = "share_settled"
    EXPENSE_SETTLED = "expense_settled"
    SETTLE_UP_COMPLETED = "settle_up_completed"

    # Read side
    BALANCE_COMPUTED = "balance_computed"
    PAGE_FOLDED = "page_folded"

    # Store events
    STORE_ERROR = "store_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'share', 'balance')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Who did it?
    actor_id: Optional[str] = Field(
        default=None,
        description="User on whose behalf the action ran"
    )

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one settle-up)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "actor_id": self.actor_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_row(self) -> list:
        """
        Convert to a flat row for tabular audit sinks.

        Columns:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         actor_id, correlation_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            self.actor_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.share_settled(expense_id, share_id, ...)
    """

    @staticmethod
    def split_computed(
        policy: str,
        amount: str,
        participant_count: int,
        actor_id: Optional[str],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPLIT_COMPUTED,
            entity_type="split",
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Split {amount} {policy} between {participant_count} participants",
            details={
                "policy": policy,
                "amount": amount,
                "participant_count": participant_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def split_input_rejected(
        field: str,
        message: str,
        actor_id: Optional[str],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPLIT_INPUT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="split",
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Split input rejected: {field}",
            error_code="invalid_input",
            error_message=message,
            details={"field": field},
        )

    @staticmethod
    def validation_finished(
        is_valid: bool,
        mode: str,
        issues: list[dict],
        actor_id: Optional[str],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        if is_valid:
            return AuditEvent(
                event_type=AuditEventType.VALIDATION_PASSED,
                severity=AuditSeverity.DEBUG,
                entity_type="split",
                actor_id=actor_id,
                correlation_id=correlation_id,
                description=f"Shares reconcile ({mode})",
                details={"mode": mode},
            )
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="split",
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Share validation failed with {len(issues)} issues ({mode})",
            details={
                "mode": mode,
                "issues": issues,
            },
        )

    @staticmethod
    def expense_committed(
        expense_id: UUID,
        amount: str,
        payer_id: str,
        edited: bool,
        actor_id: Optional[str],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        event_type = (
            AuditEventType.EXPENSE_EDITED if edited else AuditEventType.EXPENSE_COMMITTED
        )
        verb = "edited" if edited else "created"
        return AuditEvent(
            event_type=event_type,
            entity_type="expense",
            entity_id=expense_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Expense {verb}: {amount} paid by {payer_id}",
            details={
                "amount": amount,
                "payer_id": payer_id,
            },
            is_user_action=True,
        )

    @staticmethod
    def share_settled(
        expense_id: UUID,
        share_id: UUID,
        participant_id: str,
        amount: str,
        actor_id: Optional[str],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SHARE_SETTLED,
            entity_type="share",
            entity_id=share_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Share of {participant_id} ({amount}) marked settled",
            details={
                "expense_id": str(expense_id),
                "participant_id": participant_id,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def expense_settled(
        expense_id: UUID,
        share_count: int,
        actor_id: Optional[str],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_SETTLED,
            entity_type="expense",
            entity_id=expense_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Expense settled ({share_count} shares)",
            details={"share_count": share_count},
            is_user_action=True,
        )

    @staticmethod
    def settle_up_completed(
        actor_id: str,
        counterparty_id: str,
        expense_count: int,
        share_count: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLE_UP_COMPLETED,
            entity_type="balance",
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=(
                f"Settled up with {counterparty_id}: "
                f"{share_count} shares across {expense_count} expenses"
            ),
            details={
                "counterparty_id": counterparty_id,
                "expense_count": expense_count,
                "share_count": share_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def balance_computed(
        actor_id: str,
        scope: str,
        amount: str,
        expense_count: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_COMPUTED,
            severity=AuditSeverity.DEBUG,
            entity_type="balance",
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Balance with {scope}: {amount}",
            details={
                "scope": scope,
                "amount": amount,
                "expense_count": expense_count,
            },
        )

    @staticmethod
    def page_folded(
        actor_id: str,
        page: int,
        expense_count: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAGE_FOLDED,
            severity=AuditSeverity.DEBUG,
            entity_type="balance",
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Folded page {page} ({expense_count} expenses)",
            details={
                "page": page,
                "expense_count": expense_count,
            },
        )

    @staticmethod
    def store_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Expense store error during {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )
