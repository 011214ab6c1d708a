"""Classroom portal: Flask service (classroom_portal.app) and the Python client that drives it."""

__version__ = "0.1.0"

from .config import ClientConfig, LocalSettings
from .errors import PortalError
from .session import AppState, SessionBootstrap, SessionPhase

__all__ = ["AppState", "ClientConfig", "LocalSettings", "PortalError", "SessionBootstrap", "SessionPhase"]
