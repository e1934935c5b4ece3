"""Outbound callback delivery."""
from pdf_cdr.adapters.callbacks.http_dispatcher import CallbackDispatcher

__all__ = ["CallbackDispatcher"]
