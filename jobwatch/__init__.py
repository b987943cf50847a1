"""Live monitor for a remote job queue: snapshot fetches merged with push events."""

__version__ = "0.1.0"
