"""Conversation relay - batches conversation messages for a completion backend."""
