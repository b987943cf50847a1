from .snapshot_fetcher import HttpSnapshotFetcher

__all__ = ["HttpSnapshotFetcher"]
