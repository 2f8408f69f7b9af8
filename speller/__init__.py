"""
speller: adaptive spelling practice engine.

Packages:
- core: diff engine, rating model, shared models and errors
- lessons: pattern library, error-aware matcher, lesson generator
- adaptive: word selector and level adjuster
- session: state machine, reducers, runner and request-layer service
- db: store protocols with in-memory and SQLAlchemy implementations
- cli: typer command line
"""

__version__ = "1.0.0"
