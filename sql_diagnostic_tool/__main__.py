"""
Entry point for running SQL Diagnostic Tool as a module.

Enables execution via:
    python -m sql_diagnostic_tool [command] [options]

Examples:
    python -m sql_diagnostic_tool --help
    python -m sql_diagnostic_tool packs download --version 2019
    python -m sql_diagnostic_tool demo --version 2019 --offline
"""

from sql_diagnostic_tool.cli import app

if __name__ == "__main__":
    app()
