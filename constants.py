import os

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)
REDIS_DB = int(os.getenv("REDIS_DB", 0))

JWT_SECRET = os.getenv("JWT_SECRET", "default-jwt-secret")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_SECONDS = int(os.getenv("JWT_EXPIRES_SECONDS", 7 * 24 * 60 * 60))

# Upper bound for token verification + identity lookup at connection open
AUTH_TIMEOUT_SECONDS = float(os.getenv("AUTH_TIMEOUT_SECONDS", 5.0))

# Upper bound for one presence write; the handshake waits on the online write
PRESENCE_WRITE_TIMEOUT_SECONDS = float(os.getenv("PRESENCE_WRITE_TIMEOUT_SECONDS", 2.0))

# Per-connection outbound buffer; events beyond this are dropped for that connection
OUTBOUND_QUEUE_SIZE = int(os.getenv("OUTBOUND_QUEUE_SIZE", 256))

MESSAGE_MAX_LENGTH = int(os.getenv("MESSAGE_MAX_LENGTH", 1000))

APP_VERSION = os.getenv("APP_VERSION", "1.0.0")

# WebSocket close code for policy violations (rejected admission)
WS_POLICY_VIOLATION = 1008
WS_INTERNAL_ERROR = 1011
