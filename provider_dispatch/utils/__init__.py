"""Utility modules for dispatch client functionality."""
