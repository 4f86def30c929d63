"""Command-line entry points for StoreMigrator."""
