"""Incident Desk - multi-tenant incident tracking backend."""

__version__ = "0.1.0"
