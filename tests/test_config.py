"""設定モジュールのテスト"""

from pathlib import Path

import pytest
from PIL import Image

from pilthumb.config import (
    FORMAT,
    QUALITY,
    ConfigError,
    ConverterSettings,
    OutputSettings,
    ThumbConfig,
    builtin_defaults,
    load_config,
    merge_options,
)


class TestConstants:
    """既定値定数のテスト"""

    def test_format(self) -> None:
        assert isinstance(FORMAT, str)
        assert FORMAT == "jpg"

    def test_quality(self) -> None:
        assert isinstance(QUALITY, str)
        assert QUALITY == "80"

    def test_builtin_defaults(self) -> None:
        assert builtin_defaults() == {"format": "jpg", "quality": "80", "path": None, "prefix": ""}


class TestMergeOptions:
    """merge_optionsのテスト"""

    def test_later_layers_win(self) -> None:
        merged = merge_options({"format": "jpg", "a": 1}, {"format": "png"}, {"format": "gif"})
        assert merged == {"format": "gif", "a": 1}

    def test_none_layers_are_ignored(self) -> None:
        assert merge_options(None, {"a": 1}, None) == {"a": 1}

    def test_does_not_mutate_inputs(self) -> None:
        base = {"a": 1}
        merge_options(base, {"a": 2})
        assert base == {"a": 1}


class TestThumbConfig:
    """ThumbConfigのテスト"""

    def test_from_mapping_splits_known_and_extra(self) -> None:
        config = ThumbConfig.from_mapping({"format": "png", "quality": "90", "photo": True})
        assert config.format == "png"
        assert config.quality == "90"
        assert config.extra == {"photo": True}

    def test_none_prefix_becomes_empty(self) -> None:
        assert ThumbConfig.from_mapping({"prefix": None}).prefix == ""

    def test_item_access(self) -> None:
        config = ThumbConfig.from_mapping({"format": "png", "text": "hello"})
        assert config["format"] == "png"
        assert config["text"] == "hello"
        assert "text" in config
        assert "other" not in config
        with pytest.raises(KeyError):
            config["other"]

    def test_get_with_default(self) -> None:
        config = ThumbConfig()
        assert config.get("basename", "fallback") == "fallback"
        assert config.get("format") == FORMAT
        assert config.get("photo") is None

    def test_to_dict_round_trip(self) -> None:
        data = {"format": "gif", "prefix": "p_", "custom": 1}
        config = ThumbConfig.from_mapping(data)
        assert ThumbConfig.from_mapping(config.to_dict()) == config

    def test_merged(self) -> None:
        config = ThumbConfig(format="jpg").merged({"format": "webp", "photo": True})
        assert config.format == "webp"
        assert config["photo"] is True


class TestLoadConfig:
    """設定ファイル読み込みのテスト"""

    def test_load_valid_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "pilthumb.yml"
        config_file.write_text(
            """
defaults:
  quality: "90"
  prefix: web_
outputs:
  thumb:
    format: png
    ops:
      - resize: 320x240>
      - sharpen: 2x2
  full:
    ops:
      - normalize
      - draw: ["text 1,1 'x'"]
"""
        )

        settings = load_config(config_file)

        assert settings.defaults == {"quality": "90", "prefix": "web_"}
        assert [o.key for o in settings.outputs] == ["thumb", "full"]
        thumb = settings.outputs[0]
        assert thumb.options == {"format": "png"}
        assert thumb.ops == [("resize", ("320x240>",)), ("sharpen", ("2x2",))]
        assert settings.outputs[1].ops == [("normalize", ()), ("draw", ("text 1,1 'x'",))]

    def test_empty_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "empty.yml"
        config_file.write_text("")
        assert load_config(config_file) == ConverterSettings()

    @pytest.mark.parametrize(
        "content",
        [
            pytest.param("invalid: yaml: content:", id="異常系: YAML構文エラー"),
            pytest.param("- a\n- b\n", id="異常系: ルートがリスト"),
            pytest.param("defaults: [1, 2]\n", id="異常系: defaultsがリスト"),
            pytest.param("outputs: [thumb]\n", id="異常系: outputsがリスト"),
            pytest.param("outputs:\n  thumb: 3\n", id="異常系: 出力定義が数値"),
            pytest.param("outputs:\n  thumb:\n    ops: resize\n", id="異常系: opsが文字列"),
            pytest.param(
                "outputs:\n  thumb:\n    ops:\n      - {a: 1, b: 2}\n", id="異常系: 操作が複数キー"
            ),
        ],
    )
    def test_invalid_content(self, tmp_path: Path, content: str) -> None:
        config_file = tmp_path / "invalid.yml"
        config_file.write_text(content)
        with pytest.raises(ConfigError):
            load_config(config_file)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            load_config(tmp_path / "missing.yml")


class TestBuildConverter:
    """ConverterSettings.build_converterのテスト"""

    def test_build_and_convert(self, source_image: Path) -> None:
        settings = ConverterSettings(
            defaults={"prefix": "web_"},
            outputs=[
                OutputSettings(key="thumb", options={"format": "png"}, ops=[("resize", ("64x64>",))]),
                OutputSettings(key="copy"),
            ],
        )

        converter = settings.build_converter()
        assert converter.config["prefix"] == "web_"
        assert list(converter.outputs) == ["thumb", "copy"]

        res = converter.convert(source_image)

        assert res is not None
        assert res["thumb"].path == source_image.parent / "web_photo_thumb.png"
        with Image.open(res["thumb"].path) as thumb:
            assert thumb.size == (64, 48)
        assert res["copy"].path == source_image.parent / "web_photo_copy.jpg"

    def test_unknown_op_fails_output(self, source_image: Path) -> None:
        settings = ConverterSettings(outputs=[OutputSettings(key="bad", ops=[("explode", ())])])
        res = settings.build_converter().convert(source_image)
        assert res is not None
        assert res["bad"].done is False
        assert isinstance(res["bad"].error, AttributeError)
