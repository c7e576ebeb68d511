"""
Peg-engine event types and audit logging.

Every event type the controller emits has a payload model; payloads are
validated against it before the event is recorded, so the audit trail has a
fixed shape per event type.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Type

import pandas as pd
from pydantic import BaseModel, ConfigDict

PEG_OPERATION = "peg_operation"
PATH_UPDATED = "path_updated"
GAP_STATUS_CHANGED = "gap_status_changed"
PARAMETER_CHANGED = "parameter_changed"
AUTO_OPERATIONS_TOGGLED = "auto_operations_toggled"
MANUAL_INTERVENTION = "manual_intervention"
STATE_MIGRATED = "state_migrated"


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class PegOperationPayload(_Payload):
    """Automatic mint/burn with the pre-operation deviation and gap ratio."""

    action: str
    amount: int
    requested_amount: int
    current_price: int
    base_target: int
    adjusted_target: int
    deviation_bps: int
    gap_ratio: int
    cumulative_gap: int


class PathUpdatedPayload(_Payload):
    periods_added: int
    current_period: int
    target_value: int
    actual_value: int
    cumulative_gap: int


class GapStatusPayload(_Payload):
    gap_closed: bool
    cumulative_gap: int


class ParameterChangedPayload(_Payload):
    parameter: str
    old: Any
    new: Any


class AutoOperationsPayload(_Payload):
    enabled: bool
    caller: str


class ManualInterventionPayload(_Payload):
    action: str
    amount: int
    reason: str
    caller: str


class StateMigratedPayload(_Payload):
    total_minted: int
    total_burned: int
    operation_count: int
    last_operation_timestamp: int


PAYLOAD_MODELS: Dict[str, Type[_Payload]] = {
    PEG_OPERATION: PegOperationPayload,
    PATH_UPDATED: PathUpdatedPayload,
    GAP_STATUS_CHANGED: GapStatusPayload,
    PARAMETER_CHANGED: ParameterChangedPayload,
    AUTO_OPERATIONS_TOGGLED: AutoOperationsPayload,
    MANUAL_INTERVENTION: ManualInterventionPayload,
    STATE_MIGRATED: StateMigratedPayload,
}


class PegEvent(BaseModel):
    """Event emitted by the controller for auditability."""

    model_config = ConfigDict(frozen=True)

    event_type: str
    timestamp: datetime
    payload: Dict[str, Any]


class PegEventLogger:
    """
    Audit trail of controller events, kept in memory with optional JSONL
    persistence and a sink callback.
    """

    def __init__(
        self,
        persist_path: Optional[str | Path] = None,
        sink: Optional[Callable[[PegEvent], None]] = None,
    ):
        self._events: List[PegEvent] = []
        self._sink = sink
        self._persist_path = Path(persist_path) if persist_path else None
        if self._persist_path:
            self._persist_path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, event_type: str, payload: dict, timestamp: Optional[int] = None) -> PegEvent:
        """
        Validate ``payload`` for ``event_type``, record it and forward it.

        ``timestamp`` is the controller's unix time for the call; wall-clock
        time is used when omitted. Unknown event types raise ``KeyError``.
        """
        model = PAYLOAD_MODELS[event_type]
        checked = model.model_validate(payload).model_dump()
        when = (
            datetime.fromtimestamp(timestamp, tz=timezone.utc)
            if timestamp is not None
            else datetime.now(timezone.utc)
        )
        event = PegEvent(event_type=event_type, timestamp=when, payload=checked)
        self._events.append(event)

        if self._sink:
            self._sink(event)

        if self._persist_path:
            with self._persist_path.open("a", encoding="utf-8") as handle:
                handle.write(event.model_dump_json() + "\n")

        return event

    def get_events(self, event_type: Optional[str] = None) -> List[PegEvent]:
        """Return a copy of recorded events, optionally filtered by type."""
        if event_type is None:
            return list(self._events)
        return [event for event in self._events if event.event_type == event_type]

    def to_frame(self, event_type: str) -> pd.DataFrame:
        """One row per event of ``event_type`` with payload fields as columns."""

        columns = ["timestamp", *PAYLOAD_MODELS[event_type].model_fields]
        records = [
            {"timestamp": event.timestamp, **event.payload}
            for event in self.get_events(event_type)
        ]
        return pd.DataFrame.from_records(records, columns=columns)

    def clear(self) -> None:
        """Clear buffered events (does not truncate persisted file)."""
        self._events.clear()


__all__ = [
    "AUTO_OPERATIONS_TOGGLED",
    "GAP_STATUS_CHANGED",
    "MANUAL_INTERVENTION",
    "PARAMETER_CHANGED",
    "PATH_UPDATED",
    "PAYLOAD_MODELS",
    "PEG_OPERATION",
    "PegEvent",
    "PegEventLogger",
    "STATE_MIGRATED",
]
