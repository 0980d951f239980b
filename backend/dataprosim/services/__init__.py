"""Domain services: AI orchestration, storage and dataset helpers."""
