"""
EventBoard - event listings with image uploads behind a shared login.
"""
from .app import create_app
from .config import Settings, DatabaseConfig
