"""Inbound synchronization: registry, mappers, writer and orchestrator."""
