class WaterGrowError(Exception):
    """Base class for everything this package raises on purpose."""


class RoomStoreError(WaterGrowError):
    """The room store could not read or write a plant row."""


class StaleWriteError(RoomStoreError):
    """A write tried to lower a water counter."""


class ConnectionFailed(WaterGrowError):
    """Room resolution failed; the participant should retry joining."""


class SyncFailed(WaterGrowError):
    """A water write did not reach the room store."""


class StaleSnapshot(SyncFailed):
    """The store already holds a higher count than the one we tried to write."""
