# springform_engine/persistence.py

import numpy as np

from . import config as cfg
from .creature import CREATURE_DTYPE, validate
from .exceptions import CreatureFormatError

# File layout: this header, then exactly one CREATURE_DTYPE record.
HEADER_DTYPE = np.dtype([('magic', 'S4'), ('version', '<u4')])
RECORD_SIZE = HEADER_DTYPE.itemsize + CREATURE_DTYPE.itemsize


def to_bytes(creature):
    header = np.array([(cfg.CREATURE_MAGIC, cfg.CREATURE_FORMAT_VERSION)], dtype=HEADER_DTYPE)
    record = np.array([creature], dtype=CREATURE_DTYPE)
    return header.tobytes() + record.tobytes()


def from_bytes(data):
    """Decodes and validates one creature. Returns a writable record."""
    if len(data) != RECORD_SIZE:
        raise CreatureFormatError(f"Expected {RECORD_SIZE} bytes, got {len(data)}")
    header = np.frombuffer(data, dtype=HEADER_DTYPE, count=1)[0]
    if header['magic'] != cfg.CREATURE_MAGIC:
        raise CreatureFormatError(f"Bad magic {header['magic']!r}")
    if header['version'] != cfg.CREATURE_FORMAT_VERSION:
        raise CreatureFormatError(f"Unsupported format version {header['version']}")

    record = np.frombuffer(data, dtype=CREATURE_DTYPE, count=1, offset=HEADER_DTYPE.itemsize).copy()
    creature = record[0]
    problems = validate(creature)
    if problems:
        raise CreatureFormatError("Invalid creature: " + "; ".join(problems))
    return creature


def save_creature(path, creature):
    with open(path, "wb") as f:
        f.write(to_bytes(creature))


def load_creature(path):
    with open(path, "rb") as f:
        return from_bytes(f.read())
