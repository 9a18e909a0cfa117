# app/services/__init__.py
from .conversation import ConversationService, init_db, db_session

__all__ = ["ConversationService", "init_db", "db_session"]
