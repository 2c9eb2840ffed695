"""Web公開用のConverterプリセット"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pilthumb.config import ThumbConfig
from pilthumb.converter.image import ThumbImage
from pilthumb.converter.thumbnail import Converter
from pilthumb.logger import ConvertLogger

# 出力キー -> リサイズ指定
WEB_OUTPUTS: dict[str, str] = {
    "thumb": "320x240>",
    "full": "1024x768>",
}

# 写真（JPEG）に適用するシャープ指定
PHOTO_SHARPEN = "2x2"


def photo_preprocess(image: ThumbImage, config: ThumbConfig) -> None:
    """写真の場合はコントラストを正規化してシャープ化する"""
    if config.get("photo"):
        image.normalize()
        image.sharpen(PHOTO_SHARPEN)


def _resize_to(geometry: str) -> Any:
    def transform(image: ThumbImage, config: ThumbConfig) -> None:
        image.resize(geometry)

    return transform


def build_web_converter(logger: ConvertLogger | None = None) -> Converter:
    """thumb/fullの2出力を持つConverterを構築する

    Args:
        logger: Converterに渡すロガー

    Returns:
        前処理と出力を登録済みのConverter
    """
    converter = Converter(logger=logger)
    converter.preprocess(photo_preprocess)
    for key, geometry in WEB_OUTPUTS.items():
        converter.add_output(key, transform=_resize_to(geometry))
    return converter


def call_options_for(path: Path) -> dict[str, Any]:
    """変換元の拡張子から呼び出し時の設定を作る

    出力形式は変換元と同じにし、JPEGの場合のみ写真として前処理を有効にする。
    拡張子がない場合はformatを含めない。

    Args:
        path: 変換元ファイルのパス

    Returns:
        formatとphotoを含む設定
    """
    ext = path.suffix[1:5].lower()
    if ext == "jpeg":
        ext = "jpg"
    options: dict[str, Any] = {"photo": ext == "jpg"}
    if ext:
        options["format"] = ext
    return options
