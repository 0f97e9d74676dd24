"""
API routes package for the Tidemark API.
"""
from api.routes import baselines, reports

__all__ = ["baselines", "reports"]
