"""
Infrastructure Configuration
============================
AppSettings is the single source of truth; it is created once by
``get_settings()`` and handed to the Container.
"""

from .settings import AppSettings, get_settings

__all__ = ['AppSettings', 'get_settings']
