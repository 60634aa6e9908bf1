"""Core building blocks: errors, result variants, settings, database base classes."""
