from .connection import get_db, engine, AsyncSessionLocal, init_db, create_tables, build_engine, build_session_factory, Base

from .member_models import UserDB, MemberDB

__all__ = [
    'get_db', 'engine', 'AsyncSessionLocal', 'init_db', 'create_tables',
    'build_engine', 'build_session_factory', 'Base',
    'UserDB', 'MemberDB',
]
