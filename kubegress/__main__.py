"""Entry point for `python -m kubegress`.

Usage:
    python -m kubegress
    uv run python -m kubegress
"""

from __future__ import annotations

import asyncio

from kubegress.app import main

asyncio.run(main())
