"""
Tax Kernel - domain foundation for the tax calculation engine.

Holds the pieces every outer layer depends on:
- Immutable domain values (tax types, taxpayer categories, rate entries, facts)
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging with request-scoped context
- SQLAlchemy persistence primitives for versioned rule sets
"""

__version__ = "0.1.0"
