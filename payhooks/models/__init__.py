# Models package — import all models here so Alembic can discover them.

from payhooks.models.processed_event import ProcessedEvent  # noqa: F401
