from bot.handlers.admin import admin_router

__all__ = ["admin_router"]
