"""Entry point for ``python -m cli``, equivalent to the ``fork-off`` script."""

from __future__ import annotations

import sys

from cli.main import main


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
