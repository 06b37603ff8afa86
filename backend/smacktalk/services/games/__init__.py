"""Game domain services: brackets, damage, rounds and bots.

This package contains the game engine that HTTP routes and socket handlers
call into, keeping transport concerns separated from core game mechanics.
Engine operations commit their own transaction and return follow-up intents
for :func:`.scheduler.dispatch_follow_ups`.
"""
