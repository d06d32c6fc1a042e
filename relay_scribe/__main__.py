#!/usr/bin/env python3
"""
Relay Scribe - Package Entry Point
python -m relay_scribe で実行
"""

from relay_scribe.presentation.cli import main

if __name__ == "__main__":
    main()
