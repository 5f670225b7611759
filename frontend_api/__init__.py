from frontend_api.frontend_api import app

__all__ = ["app"]
