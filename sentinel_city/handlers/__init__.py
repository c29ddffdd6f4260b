"""Lambda entry points: REST API and scheduled environment ingestion."""
