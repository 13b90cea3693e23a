"""Bazar marketplace credit engine."""
