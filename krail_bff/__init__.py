"""Backend-for-frontend gateway between the Krail mobile app and the NSW trip planner."""

__version__ = "0.1.0"
