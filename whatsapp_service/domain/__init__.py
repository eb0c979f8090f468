"""
Domain layer: status models, transport events, ports and session services.
"""
