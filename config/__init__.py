"""Shared configuration: logging setup and exception hierarchy."""
