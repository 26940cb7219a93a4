"""API routers for the GitHub OAuth gateway."""

from . import auth, resources, verify

__all__ = ["auth", "resources", "verify"]
