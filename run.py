#!/usr/bin/env python3
"""
Run script for the Trackle API.
This script launches the FastAPI server built by trackle.main.create_app.
"""
import os
import sys
import traceback
import uvicorn

if __name__ == "__main__":
    try:
        port = int(os.getenv("SERVER_PORT", "8080"))
        print("Starting Trackle API server...")
        print(f"Access the API at http://localhost:{port}")
        print(f"API documentation at http://localhost:{port}/docs")

        # Settings are read inside the factory; a missing JWT_SECRET aborts here
        uvicorn.run(
            "trackle.main:create_app",
            factory=True,
            host="0.0.0.0",
            port=port,
            reload=os.getenv("RELOAD", "false").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "info").lower()
        )
    except Exception as e:
        print(f"Error starting server: {e}")
        traceback.print_exc()
        sys.exit(1)
