"""
PB Portal Backend Application Package

This package contains the FastAPI backend for the participatory budgeting
grant portal, including:

- main.py: FastAPI application and router wiring
- services/data_service.py: storage contract shared by both backends
- services/supabase_service.py: Supabase (PostgREST + Auth) backend
- services/local_service.py: SQLite backend with demonstration seed data
- services/scoring.py: weighted rubric scoring and RAG banding
"""

__version__ = "1.0.0"
