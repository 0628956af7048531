"""
Cogs for Honeyguard.

Each module defines a cog class and a ``setup(bot, runtime)`` function; the
cogs are loaded explicitly in main.py.
"""
