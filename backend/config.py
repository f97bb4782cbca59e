import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./dispatch.db")

# Optional fleet seed, relative to the backend directory
FLEET_CSV = os.getenv("FLEET_CSV")

# Fallback point for ambulances that have never reported a position (Abuja centre)
DEFAULT_LAT = float(os.getenv("DEFAULT_LAT", "9.0579"))
DEFAULT_LNG = float(os.getenv("DEFAULT_LNG", "7.4951"))

MAX_CLAIM_ATTEMPTS = int(os.getenv("MAX_CLAIM_ATTEMPTS", "5"))
AVERAGE_SPEED_KMH = float(os.getenv("AVERAGE_SPEED_KMH", "40"))

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if origin.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Events buffered per websocket before a slow client is disconnected
WS_QUEUE_SIZE = int(os.getenv("WS_QUEUE_SIZE", "100"))
