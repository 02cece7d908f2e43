"""Logging helpers shared by every JellyScan component."""
