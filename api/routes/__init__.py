"""API routes"""

from .auth import router as auth_router
from .books import router as books_router
from .chatbot import router as chatbot_router
from .events import router as events_router
from .users import router as users_router

__all__ = ['auth_router', 'books_router', 'chatbot_router', 'events_router', 'users_router']
