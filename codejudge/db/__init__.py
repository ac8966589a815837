"""Database package: declarative base, engine and session helpers."""

from .base import Base
from .session import build_engine, build_session_factory, create_all, get_engine, get_session_factory

__all__ = ["Base", "build_engine", "build_session_factory", "create_all", "get_engine", "get_session_factory"]
