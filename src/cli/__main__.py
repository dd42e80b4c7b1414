"""Allow ``python -m src.cli`` execution."""

from src.cli.commands import main

main()
