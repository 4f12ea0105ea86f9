"""Configuration module for the runway simulation service."""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
