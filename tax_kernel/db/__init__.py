"""Database primitives: declarative base, engine/session management, immutability listeners."""
