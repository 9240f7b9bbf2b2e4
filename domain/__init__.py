"""Marketplace domain entities, transition tables and errors."""
