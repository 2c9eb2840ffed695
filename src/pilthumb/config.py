"""Configuration module for pilthumb.

既定値定数、型付き設定レコード、設定マージ処理、YAML設定ファイルの読み込みを提供する。
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

if TYPE_CHECKING:
    from pilthumb.converter.image import ThumbImage
    from pilthumb.converter.thumbnail import Converter
    from pilthumb.logger import ConvertLogger

# 既定の出力形式（ドットなし拡張子）
FORMAT = "jpg"
# 既定のエンコード品質
QUALITY = "80"

# 内部で解釈される設定キー
KNOWN_KEYS = ("format", "quality", "path", "basename", "prefix", "suffix")


class ConfigError(Exception):
    """設定ファイル読み込みエラー"""

    pass


def builtin_defaults() -> dict[str, Any]:
    """組み込みの既定設定を返す"""
    return {
        "format": FORMAT,
        "quality": QUALITY,
        "path": None,
        "prefix": "",
    }


def merge_options(*layers: Mapping[str, Any] | None) -> dict[str, Any]:
    """設定を浅くマージする

    後ろのレイヤーほど優先度が高い。Noneのレイヤーは無視する。

    Args:
        *layers: 優先度の低い順に並べた設定マッピング

    Returns:
        マージ済みの新しい辞書
    """
    merged: dict[str, Any] = {}
    for layer in layers:
        if layer:
            merged.update(layer)
    return merged


@dataclass(frozen=True)
class ThumbConfig:
    """出力1件分のマージ済み設定

    既知のキーは型付きフィールドとして保持し、それ以外のキーは
    extraにそのまま保持してフック・変換処理へ渡す。

    Attributes:
        format: 出力形式（ドットなし拡張子）
        quality: エンコード品質
        path: 出力先ディレクトリ
        basename: 出力ファイル名の幹
        prefix: ファイル名の先頭に付ける文字列
        suffix: 拡張子の直前に付ける文字列
        extra: その他のパススルー設定
    """

    format: str = FORMAT
    quality: int | str = QUALITY
    path: str | Path | None = None
    basename: str | None = None
    prefix: str = ""
    suffix: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ThumbConfig:
        """マッピングからThumbConfigを生成する

        Args:
            data: 設定マッピング

        Returns:
            既知キーとextraに振り分けたThumbConfig
        """
        known = {key: data[key] for key in KNOWN_KEYS if key in data}
        extra = {key: value for key, value in data.items() if key not in KNOWN_KEYS}
        if known.get("prefix") is None:
            known["prefix"] = ""
        return cls(**known, extra=extra)

    def to_dict(self) -> dict[str, Any]:
        """既知キーとextraを平坦化した辞書を返す"""
        data = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "extra"}
        data.update(self.extra)
        return data

    def merged(self, *layers: Mapping[str, Any] | None) -> ThumbConfig:
        """追加レイヤーを上書きマージした新しいThumbConfigを返す"""
        return ThumbConfig.from_mapping(merge_options(self.to_dict(), *layers))

    def get(self, key: str, default: Any = None) -> Any:
        """既知キー・パススルーキーを問わず値を取得する"""
        if key in KNOWN_KEYS:
            value = getattr(self, key)
            return default if value is None else value
        return self.extra.get(key, default)

    def __getitem__(self, key: str) -> Any:
        if key in KNOWN_KEYS:
            return getattr(self, key)
        return self.extra[key]

    def __contains__(self, key: object) -> bool:
        return key in KNOWN_KEYS or key in self.extra


@dataclass(frozen=True)
class OutputSettings:
    """設定ファイルで定義された出力

    Attributes:
        key: 出力キー
        options: 出力固有の設定
        ops: 順に適用する名前付き画像操作 (操作名, 引数) のリスト
    """

    key: str
    options: dict[str, Any] = field(default_factory=dict)
    ops: list[tuple[str, tuple[Any, ...]]] = field(default_factory=list)

    def make_transform(self) -> Callable[[ThumbImage, ThumbConfig], None]:
        """opsを順に適用する変換関数を生成する"""
        ops = list(self.ops)

        def transform(image: ThumbImage, config: ThumbConfig) -> None:
            for name, args in ops:
                image.apply(name, *args)

        return transform


@dataclass(frozen=True)
class ConverterSettings:
    """ルート設定

    Attributes:
        defaults: Converterのインスタンス既定値
        outputs: 出力定義のリスト（定義順）
    """

    defaults: dict[str, Any] = field(default_factory=dict)
    outputs: list[OutputSettings] = field(default_factory=list)

    def build_converter(self, logger: ConvertLogger | None = None) -> Converter:
        """この設定からConverterを構築する

        Args:
            logger: Converterに渡すロガー

        Returns:
            出力を登録済みのConverter
        """
        from pilthumb.converter.thumbnail import Converter

        converter = Converter(self.defaults, logger=logger)
        for output in self.outputs:
            converter.add_output(output.key, output.options, output.make_transform())
        return converter


def load_config(path: Path) -> ConverterSettings:
    """設定ファイルを読み込む

    Args:
        path: 設定ファイルパス

    Returns:
        ConverterSettings: 読み込んだ設定

    Raises:
        ConfigError: ファイル読み込みまたはパースエラー
    """
    if not path.exists():
        raise ConfigError(f"設定ファイルが見つかりません: {path}")

    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML解析エラー: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError("設定ファイルはYAMLのマッピング形式である必要があります")

    defaults = data.get("defaults") or {}
    if not isinstance(defaults, dict):
        raise ConfigError("defaultsはマッピング形式である必要があります")

    return ConverterSettings(
        defaults={str(key): value for key, value in defaults.items()},
        outputs=_parse_outputs(data.get("outputs") or {}),
    )


def _parse_outputs(data: Any) -> list[OutputSettings]:
    """出力定義をパースする"""
    if not isinstance(data, dict):
        raise ConfigError("outputsはマッピング形式である必要があります")

    outputs: list[OutputSettings] = []
    for key, body in data.items():
        body = body or {}
        if not isinstance(body, dict):
            raise ConfigError(f"出力 '{key}' の定義はマッピング形式である必要があります")
        options = {str(k): v for k, v in body.items() if k != "ops"}
        outputs.append(
            OutputSettings(
                key=str(key),
                options=options,
                ops=_parse_ops(key, body.get("ops") or []),
            )
        )
    return outputs


def _parse_ops(key: str, data: Any) -> list[tuple[str, tuple[Any, ...]]]:
    """画像操作リストをパースする

    各要素は操作名の文字列、または {操作名: 引数} の1要素マッピング。
    引数がリストの場合は位置引数として展開する。
    """
    if not isinstance(data, list):
        raise ConfigError(f"出力 '{key}' のopsはリスト形式である必要があります")

    ops: list[tuple[str, tuple[Any, ...]]] = []
    for item in data:
        if isinstance(item, str):
            ops.append((item, ()))
        elif isinstance(item, dict) and len(item) == 1:
            name, args = next(iter(item.items()))
            if args is None:
                args = ()
            elif isinstance(args, list):
                args = tuple(args)
            else:
                args = (args,)
            ops.append((str(name), args))
        else:
            raise ConfigError(f"出力 '{key}' の画像操作が不正です: {item!r}")
    return ops
