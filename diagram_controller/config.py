import os

from dotenv import load_dotenv

# Load .env from the working directory
load_dotenv()

# HTTP server
HOST = os.getenv("CONTROLLER_HOST", "127.0.0.1")
PORT = int(os.getenv("CONTROLLER_PORT", 12345))
MAX_BODY_BYTES = int(os.getenv("CONTROLLER_MAX_BODY_BYTES", 10 * 1024 * 1024))
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CONTROLLER_CORS_ORIGINS", "*").split(",")
    if origin.strip()
]

# Model engine
MAX_HISTORY = int(os.getenv("CONTROLLER_MAX_HISTORY", 100))
FRAME_MARGIN = float(os.getenv("CONTROLLER_FRAME_MARGIN", 30))
PROJECT_NAME = os.getenv("CONTROLLER_PROJECT_NAME", "Untitled")

# Logging
LOG_LEVEL = os.getenv("CONTROLLER_LOG_LEVEL", "INFO")

# Clients (CLI and MCP server)
API_BASE = os.getenv("CONTROLLER_API_BASE", f"http://{HOST}:{PORT}/api")
