"""Allow ``python -m gchat``."""

from gchat.cli import app

if __name__ == "__main__":
    app()
