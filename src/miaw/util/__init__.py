from .asyncio import cancel_suppress, ensure_task
from .events import AsyncEventEmitter, Listener

__all__ = [
    "AsyncEventEmitter",
    "Listener",
    "cancel_suppress",
    "ensure_task",
]
