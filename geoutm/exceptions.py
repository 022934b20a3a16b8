"""Exceptions raised by geoutm"""

__all__ = ['BackendUnavailableError', 'GeoUTMError']


class GeoUTMError(Exception):
    """Base class for geoutm errors"""


class BackendUnavailableError(GeoUTMError):
    """
    A projection backend could not be initialized (missing runtime capability,
    device failed to start, etc.). This is distinct from a wrong answer: the
    backend was never able to run.
    """

    def __init__(self, backend: str, reason: str = ''):
        self.backend = backend
        self.reason = reason
        msg = f"Backend '{backend}' is not available"
        if reason:
            msg += f': {reason}'
        super().__init__(msg)
