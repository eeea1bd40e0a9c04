"""
ewoms_service package

Backend for the e-woms platform. It includes:

- FastAPI application, middleware wiring and routers (`main.py`, `routes/`)
- SQLAlchemy models and database integration (`models.py`, `db.py`)
- Passwords, JWT and token blacklist (`auth.py`)
- Redis cache client (`cache.py`)
- Error codes and the response envelope (`errors.py`)
"""
