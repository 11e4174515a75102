"""Job runtime, drift pipeline and Celery entry point."""
