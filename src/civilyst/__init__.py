"""Civilyst: civic campaigns with geo-aware cached search."""

__version__ = "0.1.0"
