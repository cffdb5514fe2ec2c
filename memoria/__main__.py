"""Entry point for running memoria as a module: python -m memoria."""

from memoria.cli.commands import app

if __name__ == "__main__":
    app()
