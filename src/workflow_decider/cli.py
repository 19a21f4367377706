"""Console script entrypoint.

The CLI is implemented in `workflow_decider.decider.main`.
"""

from __future__ import annotations

from workflow_decider.decider.main import main

__all__ = ["main"]


if __name__ == "__main__":
    raise SystemExit(main())
