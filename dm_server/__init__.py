from .routes.chat import chat_bp

# Application factory is defined in server.py; the blueprint is re-exported
# here so that other code (tests, alternative runners) can reach it without
# importing server.py.

__all__ = ["chat_bp"]
