"""Quiz domain services.

Country reference data behind a TTL cache, the question bank, scoring,
round timers and the per-player session controller. Blueprints and socket
handlers call into these; nothing here knows about HTTP or Socket.IO.
"""
