"""
Main entry point for evaluating forecast result documents.

Usage:
    python -m forecast_eval results/model_a.json
    python -m forecast_eval results/model_a.json results/model_b.json --output-dir out/

See ``python -m forecast_eval --help`` for filters and output options.
"""

import sys

from .cli import main


if __name__ == "__main__":
    sys.exit(main())
