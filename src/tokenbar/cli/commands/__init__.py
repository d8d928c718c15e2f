"""CLI commands for tokenbar. Each module registers itself with the main app."""
