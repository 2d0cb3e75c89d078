"""Game domain services: live sessions, scoring and deadline timers.

This package contains the live-game logic used by the Socket.IO handlers
and the HTTP routes, keeping transport concerns separated from core game
mechanics.
"""
