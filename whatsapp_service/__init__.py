"""
WhatsApp Session Service
========================
Keeps one authenticated WhatsApp Web session alive, mirrors its credentials
to Supabase Storage, publishes connection status to a Supabase row, and
exposes a small authenticated HTTP API.
"""

__version__ = "1.0.0"
