"""
Configuration management for the uploads API and file workers.

Contains the pydantic settings shared by the API process and the worker
processes across local-dev, aws-mock, and aws-prod deployment modes.
"""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
