# src/rchat/services/__init__.py
"""Business logic services for the RChat application."""
