"""Enumerations, settings, exceptions and attribute configuration."""
