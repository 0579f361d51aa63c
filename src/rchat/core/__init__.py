# src/rchat/core/__init__.py
"""Core configuration, errors and credential helpers."""
