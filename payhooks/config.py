import os


def _int_env(name, default):
    return int(os.environ.get(name, default))


class Config:
    """Base configuration. Shared across all environments."""

    # --- Required ---
    STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET")

    # Handle DATABASE_URL: some PaaS providers (Railway, Heroku) use
    # "postgres://" which SQLAlchemy 1.4+ doesn't accept.
    _db_url = os.environ.get("DATABASE_URL", "")
    if _db_url.startswith("postgres://"):
        _db_url = _db_url.replace("postgres://", "postgresql://", 1)
    SQLALCHEMY_DATABASE_URI = _db_url or None

    # --- Webhook intake ---
    # Max age of the signed timestamp in Stripe-Signature (replay window).
    WEBHOOK_TOLERANCE_SECONDS = _int_env("WEBHOOK_TOLERANCE_SECONDS", 300)
    # How long a processed event id is remembered. Must exceed Stripe's
    # redelivery window.
    IDEMPOTENCY_TTL_SECONDS = _int_env("IDEMPOTENCY_TTL_SECONDS", 24 * 60 * 60)
    WEBHOOK_RATE_LIMIT = os.environ.get("WEBHOOK_RATE_LIMIT", "300 per minute")

    # --- SQLAlchemy ---
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }

    @staticmethod
    def validate():
        """Fail fast if required env vars are missing."""
        required = [
            "DATABASE_URL",
            "STRIPE_WEBHOOK_SECRET",
        ]
        missing = [v for v in required if not os.environ.get(v)]
        if missing:
            raise RuntimeError(
                f"Missing required environment variables: {', '.join(missing)}"
            )
        if _int_env("WEBHOOK_TOLERANCE_SECONDS", 300) <= 0:
            raise RuntimeError("WEBHOOK_TOLERANCE_SECONDS must be positive")


class DevConfig(Config):
    """Local development — falls back to a SQLite file."""

    DEBUG = True
    SQLALCHEMY_DATABASE_URI = Config.SQLALCHEMY_DATABASE_URI or "sqlite:///payhooks-dev.db"


class TestConfig(Config):
    """Testing — in-memory SQLite, rate limiting off."""

    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    STRIPE_WEBHOOK_SECRET = "whsec_test_fake"
    WEBHOOK_TOLERANCE_SECONDS = 300
    IDEMPOTENCY_TTL_SECONDS = 24 * 60 * 60
    RATELIMIT_ENABLED = False  # disable rate limiting in tests

    @staticmethod
    def validate():
        """Skip validation in test mode — everything is hardcoded."""
        pass


class ProdConfig(Config):
    """Production."""

    DEBUG = False


config_by_name = {
    "development": DevConfig,
    "production": ProdConfig,
    "testing": TestConfig,
}
