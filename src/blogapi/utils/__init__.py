"""Utility helpers for the blog site client."""
