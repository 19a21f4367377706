"""Decider worker components.

Provides:
- Settings loaded from .env
- Structured logging
- A small CLI surface
- The event-replay decision engine and a client for the orchestration service
"""
