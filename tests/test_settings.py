"""Tests for RenderSettings and features files."""

import pytest


class TestRenderSettings:
    """Tests for defaults, validation and merging."""

    def test_defaults(self):
        from rayweave.core.settings import RenderSettings

        settings = RenderSettings().validate()
        assert (settings.width, settings.height) == (800, 600)
        assert settings.samples_per_pixel == 100
        assert settings.max_depth == 50
        assert settings.anti_aliasing is True
        assert settings.gamma_correction is True
        assert settings.seed == 0
        assert settings.aspect_ratio == pytest.approx(4.0 / 3.0)

    @pytest.mark.parametrize(
        "overrides, match",
        [
            ({"width": 0}, "positive"),
            ({"height": -3}, "positive"),
            ({"width": 5000}, "exceed maximum"),
            ({"samples_per_pixel": 0}, "samples_per_pixel"),
            ({"max_depth": -1}, "max_depth"),
            ({"width": 12.5}, "integer"),
            ({"seed": True}, "integer"),
            ({"anti_aliasing": "yes"}, "true or false"),
        ],
    )
    def test_validate_rejects(self, overrides, match):
        from rayweave.core.settings import RenderSettings

        with pytest.raises(ValueError, match=match):
            RenderSettings(**overrides).validate()

    def test_max_depth_zero_is_allowed(self):
        from rayweave.core.settings import RenderSettings

        RenderSettings(max_depth=0).validate()

    def test_merged_ignores_none(self):
        from rayweave.core.settings import RenderSettings

        base = RenderSettings(width=320, seed=4)
        merged = base.merged(width=None, height=240, seed=None, anti_aliasing=False)

        assert merged.width == 320
        assert merged.height == 240
        assert merged.seed == 4
        assert merged.anti_aliasing is False
        # base is left untouched
        assert base.height == 600

    def test_dict_round_trip(self):
        from rayweave.core.settings import RenderSettings

        settings = RenderSettings(width=64, height=32, samples_per_pixel=8, gamma_correction=False)
        assert RenderSettings.from_dict(settings.to_dict()) == settings

    def test_from_dict_unknown_key(self):
        from rayweave.core.settings import RenderSettings

        with pytest.raises(ValueError, match="Unknown setting"):
            RenderSettings.from_dict({"width": 10, "exposure": 2.0})

    def test_from_dict_not_a_mapping(self):
        from rayweave.core.settings import RenderSettings

        with pytest.raises(ValueError, match="mapping"):
            RenderSettings.from_dict([1, 2, 3])


class TestFeaturesFile:
    """Tests for RenderSettings.from_file()."""

    def test_yaml_file(self, tmp_path):
        from rayweave.core.settings import RenderSettings

        path = tmp_path / "features.yaml"
        path.write_text("width: 400\nheight: 225\nsamples_per_pixel: 16\nanti_aliasing: false\n")
        settings = RenderSettings.from_file(path)

        assert (settings.width, settings.height) == (400, 225)
        assert settings.samples_per_pixel == 16
        assert settings.anti_aliasing is False
        assert settings.max_depth == 50

    def test_json_file(self, tmp_path):
        from rayweave.core.settings import RenderSettings

        path = tmp_path / "features.json"
        path.write_text('{"seed": 12, "gamma_correction": false}')
        settings = RenderSettings.from_file(path)

        assert settings.seed == 12
        assert settings.gamma_correction is False

    def test_empty_file_gives_defaults(self, tmp_path):
        from rayweave.core.settings import RenderSettings

        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert RenderSettings.from_file(path) == RenderSettings()

    def test_malformed_yaml(self, tmp_path):
        from rayweave.core.settings import RenderSettings

        path = tmp_path / "broken.yaml"
        path.write_text("width: [1, 2\n")
        with pytest.raises(ValueError, match="Cannot parse features file"):
            RenderSettings.from_file(path)

    def test_missing_file(self, tmp_path):
        from rayweave.core.settings import RenderSettings

        with pytest.raises(FileNotFoundError):
            RenderSettings.from_file(tmp_path / "nope.yaml")
