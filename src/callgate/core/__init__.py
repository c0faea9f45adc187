from callgate.core.app import Application
from callgate.core.config import Config, Settings
from callgate.core.module import Module

__all__ = [
    "Application",
    "Config",
    "Module",
    "Settings",
]
