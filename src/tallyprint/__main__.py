"""Entry point for running tallyprint as a module.

Usage:
    python -m tallyprint [command] [options]

Example:
    python -m tallyprint render order.yaml --print
    python -m tallyprint validate my-receipt.html --kind receipt
"""

from tallyprint.cli import app

if __name__ == "__main__":
    app()
