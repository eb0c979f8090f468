"""
Transport factory loading by dotted path ('package.module:callable').
"""

import importlib

from ...domain.interfaces.transport import TransportFactory


def load_transport_factory(path: str) -> TransportFactory:
    """
    Resolve a 'package.module:callable' path to a transport factory.

    Raises:
        ValueError: path is malformed or the target is not callable
        ImportError: module cannot be imported
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Invalid transport factory '{path}'. Expected format: 'package.module:callable'")

    module = importlib.import_module(module_name)
    try:
        factory = getattr(module, attr)
    except AttributeError:
        raise ValueError(f"Module '{module_name}' has no attribute '{attr}'")

    if not callable(factory):
        raise ValueError(f"Transport factory '{path}' is not callable")
    return factory
