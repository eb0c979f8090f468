from .session_controller import ControlAction, SessionController, normalize_recipient

__all__ = ['ControlAction', 'SessionController', 'normalize_recipient']
