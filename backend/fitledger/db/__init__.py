from fitledger.db.session import async_session_maker, init_db
from fitledger.db.base import Base

__all__ = ["Base", "async_session_maker", "init_db"]
