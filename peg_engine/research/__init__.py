"""Offline analysis helpers for the peg engine."""

from peg_engine.research.replay import ReplayResult, replay_price_series, summarize_replay

__all__ = ["ReplayResult", "replay_price_series", "summarize_replay"]
