"""Tests for the config-driven generator and the command-line entry point."""
import json
import logging

import numpy as np
import pandas as pd
import pytest

from stargen import (
    CatalogConfig,
    CatalogKind,
    ConfigError,
    Coordinates,
    GalacticOffset,
    MissingRandomSourceError,
    OffsetTooLargeError,
    OffsetTooSmallError,
    PopulationGroup,
    StarCatalogGenerator,
    StarSystem,
    Target,
    reference_density,
)
import run_generate


# ── Configuration validation ─────────────────────────────────────────

class TestConfigValidation:

    def test_missing_random_source(self):
        with pytest.raises(MissingRandomSourceError):
            StarCatalogGenerator(CatalogConfig(seed=None))

    @pytest.mark.parametrize("radial", [0.0, 299.9, -150.0])
    def test_offset_too_small(self, radial):
        with pytest.raises(OffsetTooSmallError):
            StarCatalogGenerator(CatalogConfig(galactic_offset=GalacticOffset(radial, 0)))

    @pytest.mark.parametrize("radial,vertical", [
        (30_000.1, 0.0), (-40_000.0, 0.0), (8_000.0, 1_250.1), (8_000.0, -2_000.0),
    ])
    def test_offset_too_large(self, radial, vertical):
        with pytest.raises(OffsetTooLargeError):
            StarCatalogGenerator(
                CatalogConfig(galactic_offset=GalacticOffset(radial, vertical)))

    @pytest.mark.parametrize("radial,vertical", [
        (300.0, 0.0), (-300.0, 1_250.0), (30_000.0, -1_250.0), (8_000.0, 20.0),
    ])
    def test_offset_bounds_inclusive(self, radial, vertical):
        gen = StarCatalogGenerator(
            CatalogConfig(galactic_offset=GalacticOffset(radial, vertical)))
        assert gen.radius > 0

    @pytest.mark.parametrize("radial,vertical", [
        (float("nan"), 0.0), (8_000.0, float("nan")), (float("nan"), float("nan")),
    ])
    def test_offset_nan_rejected(self, radial, vertical):
        with pytest.raises(ConfigError):
            GalacticOffset(radial, vertical).validate()
        with pytest.raises(ConfigError):
            StarCatalogGenerator(
                CatalogConfig(galactic_offset=GalacticOffset(radial, vertical)))

    def test_errors_are_value_errors(self):
        assert issubclass(ConfigError, ValueError)
        assert issubclass(OffsetTooSmallError, ConfigError)
        assert issubclass(MissingRandomSourceError, ConfigError)


# ── Model selection ──────────────────────────────────────────────────

class TestModelSelection:

    def test_default_is_reference_neighborhood(self):
        gen = StarCatalogGenerator(CatalogConfig(n_systems=100, tweak=1))
        assert gen.model.volume == pytest.approx(1_300.0)
        assert gen.model.density == reference_density()

    def test_earth_like_target(self):
        gen = StarCatalogGenerator(CatalogConfig(n_systems=40, target=Target.EARTH_LIKE))
        assert gen.model.volume == pytest.approx(12_000.0)
        assert gen.radius == 15.0

    def test_offset_selects_position_model(self):
        cfg = CatalogConfig(
            n_systems=100,
            target=Target.EARTH_LIKE,
            galactic_offset=GalacticOffset(8_000, 20),
        )
        gen = StarCatalogGenerator(cfg)
        assert gen.model.volume == pytest.approx(1_235.378, abs=1e-3)

    def test_numpy_generator_as_seed(self):
        gen = StarCatalogGenerator(CatalogConfig(seed=np.random.default_rng(1)))
        assert len(gen.background_population()) > 0


# ── Stages ───────────────────────────────────────────────────────────

class TestGeneratorStages:

    def test_scaled_coordinates(self):
        gen = StarCatalogGenerator(CatalogConfig(n_systems=500))
        for _ in range(200):
            c = gen.gen_xyz()
            assert c.distance_to(Coordinates()) <= gen.radius + 1e-9
            z = gen.gen_zoned_xyz(2.0 / 3.0, 1.0)
            r = z.distance_to(Coordinates())
            assert gen.radius * 2.0 / 3.0 - 1e-9 <= r <= gen.radius + 1e-9

    def test_background_population_sets_catalog(self):
        gen = StarCatalogGenerator(CatalogConfig(n_systems=200, kind=CatalogKind.REFERENCE))
        catalog = gen.background_population()
        assert gen.catalog is catalog
        assert catalog.kind is CatalogKind.REFERENCE
        assert catalog.radius == gen.radius

    def test_open_cluster_is_standalone(self):
        gen = StarCatalogGenerator(CatalogConfig(n_systems=200))
        gen.background_population()
        before = len(gen.catalog)
        origin = Coordinates(5.0, 5.0, 5.0)
        cluster = gen.open_cluster(origin)
        assert cluster.origin == origin
        assert len(gen.catalog) == before

    def test_add_open_cluster_merges_at_origin(self):
        gen = StarCatalogGenerator(CatalogConfig(n_systems=200, seed=3))
        gen.background_population()
        before = len(gen.catalog)
        origin = Coordinates(-4.0, 2.0, 1.0)
        cluster = gen.add_open_cluster(origin)
        assert len(gen.catalog) == before + len(cluster)
        for original, merged in zip(cluster, gen.catalog.systems[before:]):
            assert merged.coordinates == original.coordinates.translate(origin)

    def test_add_open_cluster_without_background(self):
        gen = StarCatalogGenerator(CatalogConfig(n_systems=200, seed=4))
        cluster = gen.add_open_cluster()
        assert len(gen.catalog) == len(cluster)

    def test_default_cluster_origin_in_outer_third(self):
        gen = StarCatalogGenerator(CatalogConfig(n_systems=200, seed=5))
        cluster = gen.add_open_cluster()
        r = cluster.origin.distance_to(Coordinates())
        assert gen.radius * 2.0 / 3.0 - 1e-9 <= r <= gen.radius + 1e-9

    def test_sort_catalog_before_generation_is_noop(self):
        gen = StarCatalogGenerator(CatalogConfig())
        gen.sort_catalog()
        assert gen.catalog is None


# ── run() / save() ───────────────────────────────────────────────────

class TestRun:

    def test_run_returns_sorted_frame(self):
        gen = StarCatalogGenerator(CatalogConfig(n_systems=300, add_cluster=True))
        df = gen.run()
        assert isinstance(df, pd.DataFrame)
        assert len(df) == len(gen.catalog)
        assert df["age"].is_monotonic_increasing

    def test_run_reproducible(self):
        a = StarCatalogGenerator(CatalogConfig(n_systems=300, seed=99, add_cluster=True)).run()
        b = StarCatalogGenerator(CatalogConfig(n_systems=300, seed=99, add_cluster=True)).run()
        pd.testing.assert_frame_equal(a, b)

    def test_different_seeds_differ(self):
        a = StarCatalogGenerator(CatalogConfig(n_systems=300, seed=1)).run()
        b = StarCatalogGenerator(CatalogConfig(n_systems=300, seed=2)).run()
        assert not a["x"].equals(b["x"])

    def test_save_writes_outputs(self, tmp_path):
        cfg = CatalogConfig(n_systems=100, out_dir=str(tmp_path / "out"))
        gen = StarCatalogGenerator(cfg)
        systems_path, params_path = gen.save(gen.run())

        df = pd.read_csv(systems_path)
        assert len(df) == len(gen.catalog)
        with open(params_path) as f:
            params = json.load(f)
        assert params["n_systems"] == 100
        assert params["radius"] == gen.radius
        assert params["kind"] == "survey"
        assert params["radial"] is None


# ── Run summary ──────────────────────────────────────────────────────

class TestSummary:

    @staticmethod
    def _push_outside(gen):
        far = Coordinates(gen.radius * 2.0, 0.0, 0.0)
        gen.catalog.systems.append(
            StarSystem(population=PopulationGroup.OLD_I, age=5.0, coordinates=far))

    def test_background_outside_radius_warns(self, caplog):
        gen = StarCatalogGenerator(CatalogConfig(n_systems=100, seed=7))
        gen.background_population()
        self._push_outside(gen)
        with caplog.at_level(logging.INFO, logger="stargen"):
            gen._run_checks()
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "beyond the map radius" in warnings[0].getMessage()

    def test_cluster_halo_outside_radius_is_info(self, caplog):
        gen = StarCatalogGenerator(CatalogConfig(n_systems=100, seed=7))
        gen.background_population()
        gen.add_open_cluster()
        self._push_outside(gen)
        with caplog.at_level(logging.INFO, logger="stargen"):
            gen._run_checks()
        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]
        assert any("beyond the map radius" in r.getMessage() for r in caplog.records)

    def test_clean_background_has_no_warning(self, caplog):
        gen = StarCatalogGenerator(CatalogConfig(n_systems=100, seed=7))
        gen.background_population()
        with caplog.at_level(logging.INFO, logger="stargen"):
            gen._run_checks()
        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]
        assert any("Catalog:" in r.getMessage() for r in caplog.records)


# ── Command line ─────────────────────────────────────────────────────

class TestCli:

    def test_defaults(self):
        args = run_generate.build_parser().parse_args([])
        cfg = run_generate.config_from_args(args)
        assert cfg.n_systems == 1_000
        assert cfg.galactic_offset is None
        assert cfg.target is Target.SYSTEMS
        assert cfg.kind is CatalogKind.SURVEY

    def test_full_flags(self):
        args = run_generate.build_parser().parse_args([
            "--n_systems", "40", "--earth_like", "--tweak", "2",
            "--radial", "8000", "--vertical", "-20",
            "--kind", "reference", "--cluster", "--seed", "5",
        ])
        cfg = run_generate.config_from_args(args)
        assert cfg.n_systems == 40
        assert cfg.target is Target.EARTH_LIKE
        assert cfg.galactic_offset == GalacticOffset(8_000.0, -20.0)
        assert cfg.kind is CatalogKind.REFERENCE
        assert cfg.add_cluster is True
        assert cfg.seed == 5

    def test_main_writes_catalog(self, tmp_path, capsys):
        out_dir = tmp_path / "run"
        run_generate.main(["--n_systems", "50", "--out_dir", str(out_dir)])
        assert (out_dir / "systems.csv").exists()
        assert (out_dir / "params.json").exists()
        assert "Configuration" in capsys.readouterr().out

    def test_main_rejects_bad_offset(self, tmp_path):
        with pytest.raises(SystemExit):
            run_generate.main(["--radial", "100", "--out_dir", str(tmp_path)])
