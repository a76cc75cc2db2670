"""Handlers for user-issued bot commands."""
