"""Subsmith — AI-assisted subtitle transcreation pipeline."""

__version__ = "0.1.0"
