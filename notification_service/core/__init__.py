"""Core building blocks: settings, database, exceptions, dependencies."""
