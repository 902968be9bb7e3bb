"""Background execution (Celery)."""
