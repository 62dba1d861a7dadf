"""Standalone FastAPI server entry point.

Run with: python run.py
"""
import logging
import os

import uvicorn

# Configure logging to show provider activity
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

if __name__ == "__main__":
    uvicorn.run(
        "adscaler_bridge.fastapi_app:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "7860")),
        reload=os.getenv("RELOAD", "").lower() in ("1", "true"),
    )
