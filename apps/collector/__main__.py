"""
Collector Module Entry Point

Allows execution via: python -m apps.collector

Delegates to scheduler for all execution modes (scheduled and RUN_ONCE).
"""

from apps.collector.scheduler import main

if __name__ == "__main__":
    main()
