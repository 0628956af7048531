"""
Honeypot moderation core.

- **punishment_policy**: maps trigger durations to punishment kinds
- **pending_registry**: punishments recorded but not yet executed
- **onboarding_tracker**: members between joining and accepting the rules
- **moderation_executor**: timeout / temporary ban / permanent ban execution
- **moderation_coordinator**: the event-driven state machine tying them together
- **manual_unban**: operator-driven unban and role removal
"""
