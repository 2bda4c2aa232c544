"""FastAPI routers acting as controllers in the MVC architecture."""

from . import calls, test, transcriptions

__all__ = ["calls", "test", "transcriptions"]
