"""
CLI Module - Command-line interface for SU Advisor.
===================================================

Usage:
    su-advisor --help
    su-advisor ask "CS412 zor mu?"
    su-advisor similar "final sınavı" --collection su_exams
    su-advisor ingest reviews.txt -t review --course CS412
    su-advisor serve --port 50052

Components:
- main: Typer CLI application
"""

from su_advisor.cli.main import app, cli

__all__ = ["app", "cli"]
