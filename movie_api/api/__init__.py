"""
API Module

HTTP layer: app factory, component wiring, admin and health routes.
"""

from .app import create_app
from .dependencies import AppContainer, build_container

__all__ = ["create_app", "AppContainer", "build_container"]
