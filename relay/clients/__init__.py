"""Clients for external services."""

from .completion_backend import CompletionBackend, BackendReply

__all__ = ["CompletionBackend", "BackendReply"]
