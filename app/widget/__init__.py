from app.widget.chat_session import ChatMessage, ChatSession

__all__ = ["ChatMessage", "ChatSession"]
