from app.api.routes import activity, auth, reports

__all__ = [
    "auth",
    "reports",
    "activity",
]
