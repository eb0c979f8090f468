"""
Transport adapters. Concrete adapters import their client library at module
import time, so they are loaded by dotted path (``WHATSAPP_TRANSPORT``)
through ``load_transport_factory`` rather than imported here.
"""

from .loader import load_transport_factory

__all__ = ['load_transport_factory']
