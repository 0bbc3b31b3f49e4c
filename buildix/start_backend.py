#!/usr/bin/env python3
"""
Run the Buildix usage service with uvicorn.

    python -m buildix.start_backend
"""
import os

import uvicorn


def main():
    print("[Backend] Starting Buildix usage service")
    uvicorn.run(
        "buildix.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":
    main()
