#!/usr/bin/env python3
"""gittyup - multi-repository branch promotion."""

from gittyup.cli import main

if __name__ == "__main__":
    main()
