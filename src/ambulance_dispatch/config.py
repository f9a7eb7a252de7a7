import os


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
SEED_FLEET = _flag("SEED_FLEET", "true")
SIMULATOR_ENABLED = _flag("SIMULATOR_ENABLED", "true")
SIM_TICK_SECONDS = float(os.getenv("SIM_TICK_SECONDS", "4"))
SIM_CALL_INTERVAL_SECONDS = float(os.getenv("SIM_CALL_INTERVAL_SECONDS", "12"))
SIM_JITTER_DEGREES = float(os.getenv("SIM_JITTER_DEGREES", "0.003"))
SIM_CALL_RADIUS_KM = float(os.getenv("SIM_CALL_RADIUS_KM", "5"))
SSE_KEEPALIVE_SECONDS = float(os.getenv("SSE_KEEPALIVE_SECONDS", "15"))
SSE_RETRY_MILLISECONDS = int(os.getenv("SSE_RETRY_MILLISECONDS", "5000"))
SSE_QUEUE_SIZE = int(os.getenv("SSE_QUEUE_SIZE", "100"))
