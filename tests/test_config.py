"""Tests for SimulationConfig and the presets."""

import dataclasses

import pytest

from gravtree import GRAVITATIONAL_CONSTANT, NBODY, PRESETS, InvalidConfigError, SimulationConfig


class TestDefaults:
    """Tests for default values."""

    def test_defaults(self):
        config = SimulationConfig()
        assert config.G == GRAVITATIONAL_CONSTANT
        assert config.theta == 0.5
        assert config.min_distance == 1.0
        assert config.softening == 0.0
        assert config.max_depth == 48
        assert config.integrator == "leapfrog"
        assert config.method == "barnes_hut"
        assert config.max_dt is None
        assert not config.verbose

    def test_defaults_match_nbody_dict(self):
        config = SimulationConfig.from_dict(NBODY)
        assert config == SimulationConfig()

    def test_frozen(self):
        config = SimulationConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.theta = 1.0


class TestValidation:
    """Tests for rejected parameters."""

    @pytest.mark.parametrize("overrides", [
        {"G": 0.0},
        {"G": float("nan")},
        {"theta": -0.1},
        {"min_distance": -1.0},
        {"softening": float("inf")},
        {"max_depth": 0},
        {"integrator": "rk4"},
        {"damping": 0.0},
        {"damping": 1.5},
        {"max_dt": 0.0},
        {"chunk_size": 0},
        {"num_threads": 0},
        {"method": "fmm"},
    ])
    def test_invalid(self, overrides):
        with pytest.raises(InvalidConfigError):
            SimulationConfig(**overrides)

    def test_with_overrides_validates(self):
        with pytest.raises(InvalidConfigError):
            SimulationConfig().with_overrides(theta=-1.0)

    def test_with_overrides_copies(self):
        base = SimulationConfig()
        changed = base.with_overrides(theta=0.9)
        assert changed.theta == 0.9
        assert base.theta == 0.5

    def test_theta_zero_allowed(self):
        assert SimulationConfig(theta=0.0).theta == 0.0


class TestPresets:
    """Tests for named presets."""

    @pytest.mark.parametrize("name", sorted(PRESETS))
    def test_every_preset_builds(self, name):
        config = SimulationConfig.from_preset(name)
        preset = PRESETS[name]
        assert config.G == preset.get("G", GRAVITATIONAL_CONSTANT)
        assert preset["num_bodies"] > 0
        assert preset["dt"] > 0

    def test_overrides_win(self):
        config = SimulationConfig.from_preset("galaxy", theta=0.2)
        assert config.theta == 0.2
        assert config.G == PRESETS["galaxy"]["G"]

    def test_unknown_preset(self):
        with pytest.raises(InvalidConfigError, match="Unknown preset"):
            SimulationConfig.from_preset("nope")

    def test_from_dict_ignores_unknown_keys(self):
        config = SimulationConfig.from_dict({"theta": 0.7, "num_bodies": 10, "name": "x"})
        assert config.theta == 0.7
