from tablebot.handlers.client import router as client_router

__all__ = ["client_router"]
