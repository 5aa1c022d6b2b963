"""
Fetch orchestration: crawler, fetch client, queue and events.
"""
