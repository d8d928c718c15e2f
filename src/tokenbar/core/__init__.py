"""Core orchestration and utilities for tokenbar."""
