"""Adapters for running the audit service from other execution models."""

from .sync_to_async import AsyncAuditService

__all__ = ["AsyncAuditService"]
