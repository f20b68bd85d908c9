"""FastAPI routers acting as controllers in the MVC architecture."""

from . import assessments, auth, cases, recordings, templates, users

__all__ = ["assessments", "auth", "cases", "recordings", "templates", "users"]
