"""Service layer: webhook ingestion, audit queries, follow-ups and subscriptions."""
