# springform_engine/exceptions.py


class SpringformError(Exception):
    """Base class for every error raised by the engine."""


class AllocationError(SpringformError):
    """A genetic engine buffer could not be obtained."""


class EngineClosedError(SpringformError):
    """The genetic engine was used after close()."""


class CreatureFormatError(SpringformError):
    """A persisted creature record is malformed or violates the body invariants."""
