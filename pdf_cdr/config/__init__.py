"""Configuration: processing limits and application settings."""
from pdf_cdr.config.settings import AppSettings, get_app_settings

__all__ = ["AppSettings", "get_app_settings"]
