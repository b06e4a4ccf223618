#!/usr/bin/env python3
"""Compressor: feed-forward soft-knee compressor with lookahead."""

import sys

from compressor.audio.render import main as render


def main(argv=None):
    return render(argv)


if __name__ == "__main__":
    sys.exit(main())
