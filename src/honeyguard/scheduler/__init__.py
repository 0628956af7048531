"""
Time-deferred work.

- **scheduled_task**: cancelable one-shot task over a clock
- **expiry_scheduler**: periodic sweep that lifts expired temporary bans
"""
