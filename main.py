"""
Run the BravaPress job worker: `python main.py` loops, `python main.py --once` does a single tick.
"""
import asyncio
import sys

from worker.main import main as worker_main


if __name__ == "__main__":
    asyncio.run(worker_main(sys.argv[1:]))
