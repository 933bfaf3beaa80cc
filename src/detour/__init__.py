"""
detour drives a resumable path search to completion one scheduler tick at a time, and retries
it with caller-adjusted constraints when no path was found.

The package is organised as follows:
 - low defines the data model shared with callers (points, poses, courses, search context)
   and the tracing/logging helpers
 - controller declares the search engine interface and implements the controller state machine
 - engines contains search engine implementations: scripted ones for simulation and tests, and
   a reference A* over an occupancy grid
 - utility holds the tick loop used to drive controllers outside of a host application
 - simulate is a command line entrypoint running a search on a generated grid
"""

from detour.version import __version__

__all__ = ["__version__"]
