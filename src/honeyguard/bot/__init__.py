"""Runtime wiring for the Discord bot."""
