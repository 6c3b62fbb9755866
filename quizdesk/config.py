import os

from dotenv import load_dotenv

# Pick up a local .env before any setting is read
load_dotenv()


class Settings:
    """
    Plain settings object, no pydantic.

    Reads environment variables (and .env, if present). Several names are
    accepted for the JWT secret so that old deployments keep working:
      - SECRET_KEY
      - JWT_SECRET / JWT_SECRET_KEY
    """

    def __init__(self) -> None:
        self.DATABASE_URL = os.getenv(
            "QUIZDESK_DATABASE_URL", "sqlite:///./quizdesk.db"
        )

        secret = os.getenv("SECRET_KEY", "change_me_in_prod")
        jwt_secret_env = os.getenv("JWT_SECRET") or os.getenv("JWT_SECRET_KEY")
        if jwt_secret_env:
            secret = jwt_secret_env
        self.SECRET_KEY = secret
        self.JWT_SECRET_KEY = secret

        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

        # 30 days by default (30 * 24 * 60)
        self.ACCESS_TOKEN_EXPIRE_MINUTES = int(
            os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "43200")
        )

        # Optional bootstrap admin, created at startup if no admin exists yet
        self.ADMIN_EMAIL = os.getenv("ADMIN_EMAIL") or None
        self.ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD") or None

        # Image generation
        self.GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or None
        self.GEMINI_API_BASE = os.getenv(
            "GEMINI_API_BASE",
            "https://generativelanguage.googleapis.com/v1beta",
        ).rstrip("/")
        self.GEMINI_TIMEOUT = float(os.getenv("GEMINI_TIMEOUT", "120"))

        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

        # Prefix for share links; empty means "relative to the current host"
        self.PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "").rstrip("/")

        self.jwt_secret_key = self.JWT_SECRET_KEY
        self.jwt_algorithm = self.JWT_ALGORITHM
        self.access_token_expire_minutes = self.ACCESS_TOKEN_EXPIRE_MINUTES


settings = Settings()
