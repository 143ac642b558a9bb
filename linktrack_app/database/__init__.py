from .connection import Base, SessionLocal, create_db_engine, engine, get_db

__all__ = ["Base", "SessionLocal", "create_db_engine", "engine", "get_db"]
