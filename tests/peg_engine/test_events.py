from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from peg_engine.monitoring.events import (
    GAP_STATUS_CHANGED,
    PARAMETER_CHANGED,
    PEG_OPERATION,
    PegEvent,
    PegEventLogger,
)

OPERATION = {
    "action": "mint",
    "amount": 10**23,
    "requested_amount": 10**23,
    "current_price": 12 * 10**17,
    "base_target": 10**18,
    "adjusted_target": 10**18,
    "deviation_bps": 2_000,
    "gap_ratio": 1_000,
    "cumulative_gap": 0,
}


def test_event_logger_uses_supplied_timestamp() -> None:
    logger = PegEventLogger()

    event = logger.log(GAP_STATUS_CHANGED, {"gap_closed": True, "cumulative_gap": 0}, timestamp=1_700_006_400)

    assert event.timestamp == datetime(2023, 11, 15, 0, 0, tzinfo=timezone.utc)
    assert logger.get_events() == [event]


def test_event_logger_filters_and_clears() -> None:
    logger = PegEventLogger()
    logger.log(PEG_OPERATION, OPERATION)
    logger.log(PARAMETER_CHANGED, {"parameter": "peg_tolerance", "old": 100, "new": 50})

    assert [e.event_type for e in logger.get_events(PARAMETER_CHANGED)] == [PARAMETER_CHANGED]

    logger.clear()
    assert logger.get_events() == []


def test_payload_shape_is_enforced_per_event_type() -> None:
    logger = PegEventLogger()

    with pytest.raises(ValidationError):
        logger.log(PEG_OPERATION, {"amount": 5})
    with pytest.raises(ValidationError):
        logger.log(GAP_STATUS_CHANGED, {"gap_closed": True, "cumulative_gap": 0, "extra": 1})
    with pytest.raises(KeyError):
        logger.log("unknown_event", {})
    assert logger.get_events() == []


def test_event_logger_sink_and_persistence(tmp_path) -> None:
    seen: list[PegEvent] = []
    target = tmp_path / "audit" / "events.jsonl"
    logger = PegEventLogger(persist_path=target, sink=seen.append)

    logger.log(PEG_OPERATION, OPERATION, timestamp=0)
    logger.log(PARAMETER_CHANGED, {"parameter": "gap_tolerance", "old": 100, "new": 20}, timestamp=60)

    assert [e.event_type for e in seen] == [PEG_OPERATION, PARAMETER_CHANGED]
    lines = target.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    first = json.loads(lines[0])
    assert first["event_type"] == PEG_OPERATION
    assert first["payload"]["amount"] == 10**23


def test_to_frame_expands_payload_columns() -> None:
    logger = PegEventLogger()
    logger.log(PEG_OPERATION, OPERATION, timestamp=0)
    logger.log(PEG_OPERATION, {**OPERATION, "action": "burn", "deviation_bps": 150}, timestamp=300)

    frame = logger.to_frame(PEG_OPERATION)

    assert list(frame.columns)[:3] == ["timestamp", "action", "amount"]
    assert frame["action"].tolist() == ["mint", "burn"]
    assert frame["deviation_bps"].tolist() == [2_000, 150]
    assert logger.to_frame(GAP_STATUS_CHANGED).empty
