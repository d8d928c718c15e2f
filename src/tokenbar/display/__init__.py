"""Rendering of usage data for the terminal and for JSON output."""
