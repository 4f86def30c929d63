"""StoreMigrator - spreadsheet-to-store catalog migration jobs."""

__version__ = "0.3.0"
