"""Embed builders for DMs and moderation log entries."""
