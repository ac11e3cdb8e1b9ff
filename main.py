"""
Event Notifier — Entry Point.

Single entry point: `python main.py` serves the trigger endpoints and
starts the timed reminder jobs.
"""

import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from notifier.api.server import main

if __name__ == "__main__":
    main()
