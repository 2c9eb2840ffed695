"""Converter module for pilthumb.

画像変換機能を提供するモジュール。
名前付き出力の登録、設定のマージ、出力ごとの変換結果の収集を扱う。
"""

from pilthumb.converter.base import (
    ConversionError,
    ConversionResult,
    ImageProc,
    OutputResult,
    OutputSpec,
)
from pilthumb.converter.image import NAMED_OPS, ThumbImage, fit_size, parse_geometry
from pilthumb.converter.thumbnail import Converter

__all__ = [
    "NAMED_OPS",
    "ConversionError",
    "ConversionResult",
    "Converter",
    "ImageProc",
    "OutputResult",
    "OutputSpec",
    "ThumbImage",
    "fit_size",
    "parse_geometry",
]
