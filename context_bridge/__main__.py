"""
Entry point for running context_bridge as a module.

Usage: python -m context_bridge [args]
"""

from context_bridge.cli import main

if __name__ == "__main__":
    main()
