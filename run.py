#!/usr/bin/env python3
"""
Run script for the Careflow assessment backend
"""
import uvicorn

from careflow.config.settings import settings
from careflow.main import app

if __name__ == "__main__":
    uvicorn.run(app, host=settings.host, port=settings.port, reload=settings.debug)
