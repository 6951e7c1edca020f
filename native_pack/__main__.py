#!/usr/bin/env python3
"""
Allows running: python -m native_pack
"""

from .cli import app

if __name__ == "__main__":
    app()
