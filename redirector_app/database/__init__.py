from .connection import Base, SessionLocal, engine, get_db, atomic

__all__ = ["Base", "SessionLocal", "engine", "get_db", "atomic"]
