import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3000))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

# Number of broadcast messages kept per room for GET /chat/{room_id}
HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", 100))

ROOM_ID_PREFIX = os.getenv("ROOM_ID_PREFIX", "room_")

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]

LEAVE_NOTICE = "A user has left the chat."
ROOM_MISSING_NOTICE = "Chat room does not exist."

# Seconds a single member send may take before it counts as failed
SEND_TIMEOUT = float(os.getenv("SEND_TIMEOUT", 5))
