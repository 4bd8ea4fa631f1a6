"""
API Package - FastAPI Route Modules

Query workflow, database administration and system status endpoints.
"""

from .admin import router as admin_router
from .databases import router as databases_router
from .queries import router as queries_router

__all__ = ['admin_router', 'databases_router', 'queries_router']
