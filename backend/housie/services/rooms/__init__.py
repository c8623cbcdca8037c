"""Room services: ticket strips, the room registry, timers and claims.

Pure(ish) game logic used by the socket handlers and HTTP routes, kept
apart from transport concerns. Nothing here imports Flask.
"""
