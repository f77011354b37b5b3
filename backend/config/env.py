import os
from dotenv import load_dotenv

load_dotenv()

# =====================================================
# ENV
# =====================================================
ENV = os.getenv("ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# =====================================================
# JWT
# =====================================================
JWT_SECRET = os.getenv("JWT_SECRET")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_DAYS = int(os.getenv("ACCESS_TOKEN_DAYS", 30))

# =====================================================
# SNAPSHOT PERSISTENCE
# =====================================================
SNAPSHOT_BACKEND = os.getenv("SNAPSHOT_BACKEND", "memory")   # memory | json | mongo
SNAPSHOT_PATH = os.getenv("SNAPSHOT_PATH", "data/store_snapshot.json")
SNAPSHOT_INTERVAL_SECONDS = int(os.getenv("SNAPSHOT_INTERVAL_SECONDS", 60))

MONGO_URI = os.getenv("MONGO_URI") or os.getenv("MONGODB_URI")
MONGO_SNAPSHOT_COLLECTION = os.getenv("MONGO_SNAPSHOT_COLLECTION", "store_snapshots")

# =====================================================
# CORS
# =====================================================
CORS_ALLOWED_ORIGINS = os.getenv("CORS_ALLOWED_ORIGINS", "").split(",")

# =====================================================
# ADMIN
# =====================================================
ADMIN_EMAIL = (os.getenv("ADMIN_EMAIL") or "").strip().lower() or None


def validate_production_env() -> None:
    if (ENV or "").lower() != "production":
        return

    required = {
        "JWT_SECRET": JWT_SECRET,
    }
    if SNAPSHOT_BACKEND == "mongo":
        required["MONGODB_URI"] = MONGO_URI
    if SNAPSHOT_BACKEND == "json":
        required["SNAPSHOT_PATH"] = SNAPSHOT_PATH

    invalid = []
    for key, value in required.items():
        val = (value or "").strip()
        if not val or val.startswith("CHANGE_THIS"):
            invalid.append(key)

    if SNAPSHOT_BACKEND not in {"memory", "json", "mongo"}:
        invalid.append("SNAPSHOT_BACKEND")

    if invalid:
        raise RuntimeError(f"Production env misconfigured. Invalid keys: {', '.join(sorted(invalid))}")
