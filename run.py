#!/usr/bin/env python3
"""
Run script for the CallScribe backend
"""
import uvicorn

from callscribe.config.settings import settings

if __name__ == "__main__":
    uvicorn.run(
        "callscribe.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
