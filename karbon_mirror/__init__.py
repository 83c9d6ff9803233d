"""Karbon mirror - keeps a local relational copy of Karbon practice data."""
