"""Pending-item queue module."""

from .event_queue import EventQueue

__all__ = ["EventQueue"]
