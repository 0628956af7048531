"""
Utility functions and helpers for Honeyguard.

- **logger**: console + rotating file logging
- **clock**: injectable time source
- **discord_utils**: permission predicates and moderation primitives
"""
