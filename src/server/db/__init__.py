from src.server.db.session import engine, get_session, init_db, make_engine

__all__ = ["engine", "get_session", "init_db", "make_engine"]
