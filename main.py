#!/usr/bin/env python3
"""ZenBell entry point.

Run with:
    python main.py
    python -m zenbell
"""

from zenbell.__main__ import main


if __name__ == "__main__":
    main()
