"""Allow running as ``python -m warpackager``."""

from warpackager.cli import app

if __name__ == "__main__":
    app()
