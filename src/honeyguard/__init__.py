"""
Honeyguard - honeypot moderation for Discord

Honeyguard watches for accounts that pick up honeypot roles or post in
honeypot channels and punishes them with a timeout, a temporary ban or a
permanent ban. Members still going through onboarding are checked once they
accept the rules instead of immediately.
"""

__version__ = "0.1.0"
