"""Core domain types for Civilyst."""
