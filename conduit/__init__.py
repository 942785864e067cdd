"""Conduit: a RealWorld blogging API built on FastAPI and async SQLAlchemy."""

__version__ = "1.0.0"
