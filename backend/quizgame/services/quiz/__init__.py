"""Quiz domain services: engine, scoring, leaderboard, score store, timers.

Pure game logic (engine, scoring, leaderboard, types) has no Flask imports;
``gameplay`` and ``scheduler`` connect it to the app, the store and sockets.
"""
