import os
import threading

WEAK_SESSION_SECRETS = {"", "changeme", "secret", "default", "dev-session-secret"}


class BackendSettings:
    _instance = None
    _lock = threading.Lock()

    def __init__(self):
        if not getattr(self, "_loaded", False):
            self.reload()

    def reload(self) -> None:
        """Re-read every setting from the environment."""
        self.DEBUG_MODE = os.environ.get("DEBUG_MODE", "development")
        self.LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

        # Document store: "postgres" or "memory"
        self.DOCUMENT_STORE = os.environ.get("DOCUMENT_STORE", "postgres").lower()
        self.POSTGRES_URL = os.environ.get("POSTGRES_URL", "localhost:5432")
        self.POSTGRES_USER = os.environ.get("POSTGRES_USER", "postgres")
        self.POSTGRES_PASSWORD = os.environ.get("POSTGRES_PASSWORD", "")
        self.POSTGRES_DB = os.environ.get("POSTGRES_DB", "uncip")

        # Session tokens
        self.SESSION_SECRET = os.environ.get("SESSION_SECRET", "dev-session-secret")
        self.SESSION_ALGORITHM = os.environ.get("SESSION_ALGORITHM", "HS256")
        self.SESSION_TTL_SECONDS = int(os.environ.get("SESSION_TTL_SECONDS", "3600"))

        # Identity provider
        self.KEYCLOAK_SERVER_URL = os.environ.get("KEYCLOAK_SERVER_URL", "http://localhost:8180")
        self.KEYCLOAK_REALM = os.environ.get("KEYCLOAK_REALM", "uncip")
        self.KEYCLOAK_ADMIN = os.environ.get("KEYCLOAK_ADMIN", "admin")
        self.KEYCLOAK_ADMIN_PASSWORD = os.environ.get("KEYCLOAK_ADMIN_PASSWORD", "")
        self.KEYCLOAK_VERIFY_SSL = os.environ.get("KEYCLOAK_VERIFY_SSL", "true").lower() in ["true", "1", "yes", "on"]

        self._loaded = True

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(BackendSettings, cls).__new__(cls)
        return cls._instance

    @property
    def database_url(self) -> str:
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_URL}/{self.POSTGRES_DB}"

    def validate_runtime(self) -> None:
        """Fail fast on production misconfiguration."""
        if self.DEBUG_MODE != "production":
            return
        if len(self.SESSION_SECRET) < 16 or self.SESSION_SECRET.lower() in WEAK_SESSION_SECRETS:
            raise RuntimeError("SESSION_SECRET is missing or too weak for production")
        if self.DOCUMENT_STORE == "memory":
            raise RuntimeError("The in-memory document store cannot be used in production")

settings = BackendSettings()
