"""Audit events emitted by the peg controller."""

from peg_engine.monitoring.events import PegEvent, PegEventLogger

__all__ = ["PegEvent", "PegEventLogger"]
