"""
Mastery Loop: adaptive quiz, remediation and weakness tracking.

Packages:
- core: domain models and exceptions
- study: scoring engine
- learning: weakness profile store and its backends
- adaptive: remediation gate and the mastery loop controller
- quiz: weak-topic-biased quiz composition
- generation: content-generator client, prompts and parsing
- db: SQLAlchemy models and session handling
- cli: typer command line
"""

__version__ = "1.0.0"
