"""Utility functions for networth."""
