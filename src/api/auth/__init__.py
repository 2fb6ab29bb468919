"""
Auth API package.

Contains the signup, verification and session routes.
"""

from src.api.auth.routes import router

__all__ = ["router"]
