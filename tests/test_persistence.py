"""Unit tests for the single-creature record format."""

import numpy as np
import pytest

from springform_engine import config as cfg
from springform_engine.creature import CREATURE_DTYPE, animate, fitness, validate
from springform_engine.exceptions import CreatureFormatError, SpringformError
from springform_engine.persistence import (HEADER_DTYPE, RECORD_SIZE, from_bytes, load_creature,
                                           save_creature, to_bytes)


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------

class TestEncoding:
    def test_layout(self, random_creature):
        data = to_bytes(random_creature)
        assert len(data) == RECORD_SIZE == 8 + CREATURE_DTYPE.itemsize
        assert data[:4] == cfg.CREATURE_MAGIC
        assert int.from_bytes(data[4:8], "little") == cfg.CREATURE_FORMAT_VERSION
        assert data[HEADER_DTYPE.itemsize:] == random_creature.tobytes()

    def test_decoded_record_is_an_independent_writable_copy(self, random_creature):
        fitness(random_creature)
        animate(random_creature, 0.1)
        loaded = from_bytes(to_bytes(random_creature))
        assert loaded.tobytes() == random_creature.tobytes()
        assert loaded['fitness'] == random_creature['fitness']

        animate(loaded, 0.1)
        assert loaded['clock'] != random_creature['clock']
        assert validate(loaded) == []

    def test_file_round_trip(self, random_creature, tmp_path):
        path = tmp_path / "walker.creature"
        save_creature(path, random_creature)
        assert path.stat().st_size == RECORD_SIZE
        assert load_creature(path).tobytes() == random_creature.tobytes()


# ---------------------------------------------------------------------------
# Rejection
# ---------------------------------------------------------------------------

class TestRejection:
    def test_truncated(self, random_creature):
        with pytest.raises(CreatureFormatError, match="bytes"):
            from_bytes(to_bytes(random_creature)[:-1])

    def test_trailing_garbage(self, random_creature):
        with pytest.raises(CreatureFormatError):
            from_bytes(to_bytes(random_creature) + b"\x00")

    def test_bad_magic(self, random_creature):
        data = b"JUNK" + to_bytes(random_creature)[4:]
        with pytest.raises(CreatureFormatError, match="magic"):
            from_bytes(data)

    def test_unknown_version(self, random_creature):
        data = bytearray(to_bytes(random_creature))
        data[4:8] = (cfg.CREATURE_FORMAT_VERSION + 1).to_bytes(4, "little")
        with pytest.raises(CreatureFormatError, match="version"):
            from_bytes(bytes(data))

    def test_invariant_violation(self, random_creature):
        random_creature['muscle_first'][0] = cfg.MAX_NODES + 3
        with pytest.raises(CreatureFormatError, match="endpoint"):
            from_bytes(to_bytes(random_creature))

    def test_playback_cursor_out_of_range(self, random_creature):
        random_creature['action'] = 10 ** 9
        with pytest.raises(CreatureFormatError, match="action cursor"):
            from_bytes(to_bytes(random_creature))

    def test_non_finite_elapsed(self, random_creature):
        random_creature['action_elapsed'] = np.nan
        with pytest.raises(CreatureFormatError, match="action elapsed"):
            from_bytes(to_bytes(random_creature))

    def test_non_finite_energy(self, random_creature):
        random_creature['energy'] = np.nan
        with pytest.raises(CreatureFormatError, match="energy"):
            from_bytes(to_bytes(random_creature))

    def test_out_of_range_strength(self, random_creature):
        random_creature['muscle_strength'][0] = cfg.MAX_STRENGTH * 10
        with pytest.raises(CreatureFormatError, match="strength"):
            from_bytes(to_bytes(random_creature))

    def test_corrupt_counts(self, random_creature):
        records = np.zeros(1, dtype=CREATURE_DTYPE)
        records[0] = random_creature
        records['n_nodes'] = 1000
        data = np.array([(cfg.CREATURE_MAGIC, cfg.CREATURE_FORMAT_VERSION)], dtype=HEADER_DTYPE).tobytes()
        with pytest.raises(SpringformError, match="node count"):
            from_bytes(data + records.tobytes())

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            load_creature(tmp_path / "absent.creature")
