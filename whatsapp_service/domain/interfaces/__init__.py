from .storage import IObjectStore, IStatusStore
from .transport import ITransport, TransportFactory, EventCallback

__all__ = ['IObjectStore', 'IStatusStore', 'ITransport', 'TransportFactory', 'EventCallback']
