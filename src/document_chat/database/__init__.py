"""Database connection and session management."""

from document_chat.database.connection import (
    check_connection,
    close_engine,
    create_engine,
    create_tables,
    get_engine,
)
from document_chat.database.models import Base, Conversation, Document, Message
from document_chat.database.session import (
    close_db,
    get_session,
    get_session_factory,
    init_db,
)

__all__ = [
    # Models
    "Base",
    "Document",
    "Conversation",
    "Message",
    # Connection
    "get_engine",
    "create_engine",
    "create_tables",
    "close_engine",
    "check_connection",
    # Session
    "get_session",
    "get_session_factory",
    "init_db",
    "close_db",
]
