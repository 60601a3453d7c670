"""Adapters for integrating WriteMet with models, storage and chat exports."""

from .chat_export import chat_export_metadata, messages_since, parse_chat_export
from .openai_model import OpenAIChatModel
from .sqlalchemy_repo import SQLAlchemyMessageSource

__all__ = [
    "OpenAIChatModel",
    "SQLAlchemyMessageSource",
    "parse_chat_export",
    "chat_export_metadata",
    "messages_since",
]
