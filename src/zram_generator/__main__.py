#!/usr/bin/env python3
"""
Module entry point for zram-generator.

Enables execution via: python -m zram_generator
"""

from zram_generator.main import main

if __name__ == "__main__":
    main()
