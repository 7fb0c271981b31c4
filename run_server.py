#!/usr/bin/env python3
"""
Convenience script to run the Switchboard server.
"""
import uvicorn
from switchboard.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "switchboard.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower()
    )
