"""Sviesa HTTP API."""
