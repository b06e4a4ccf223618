#!/usr/bin/env python3
"""Render a WAV file through the compressor from the project root.

Usage:
    uv run python main.py input.wav output.wav [--preset vocal]
    uv run python -m compressor.main input.wav output.wav
"""

import sys

if __name__ == "__main__":
    from compressor.main import main
    sys.exit(main())
