"""画像ハンドルモジュール

Pillowの画像オブジェクトをラップし、出力パイプラインから使う
画像操作（形式指定、品質指定、リサイズ、シャープ、正規化、描画、ビネット、書き出し）を提供する。
ジオメトリ指定はImageMagick形式（例: "320x240>"）を受け付ける。
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from PIL import Image, ImageDraw, ImageFilter, ImageOps

# 拡張子からPillowの保存形式への対応表
FORMAT_BY_EXTENSION: dict[str, str] = {
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "png": "PNG",
    "gif": "GIF",
    "webp": "WEBP",
    "bmp": "BMP",
    "tif": "TIFF",
    "tiff": "TIFF",
}

# 品質指定が有効な形式
LOSSY_FORMATS = ("JPEG", "WEBP")

# apply()で呼び出せる名前付き操作
NAMED_OPS = ("resize", "sharpen", "normalize", "draw", "vignette")

_GEOMETRY_PATTERN = re.compile(r"^(\d+)?(?:x(\d+))?([<>!^])?$")
_SHARPEN_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)(?:x(\d+(?:\.\d+)?))?$")
_VIGNETTE_PATTERN = re.compile(
    r"^(\d+(?:\.\d+)?)?(?:x(\d+(?:\.\d+)?))?(?:([+-]\d+)([+-]\d+))?$"
)
_TEXT_PATTERN = re.compile(r"""^text\s+(-?\d+)\s*,\s*(-?\d+)\s+(['"])(.*)\3\s*$""")


def parse_geometry(geometry: str) -> tuple[int | None, int | None, str]:
    """ImageMagick形式のジオメトリ文字列を解析する

    Args:
        geometry: "WxH", "W", "xH" に任意のフラグ（> < ! ^）を付けた文字列

    Returns:
        (幅, 高さ, フラグ) のタプル。省略された寸法はNone、フラグなしは空文字

    Raises:
        ValueError: 書式が不正な場合
    """
    match = _GEOMETRY_PATTERN.match(geometry.strip())
    if match is None or (match.group(1) is None and match.group(2) is None):
        raise ValueError(f"不正なジオメトリ指定です: {geometry!r}")
    width = int(match.group(1)) if match.group(1) else None
    height = int(match.group(2)) if match.group(2) else None
    if width == 0 or height == 0:
        raise ValueError(f"ジオメトリの寸法は1以上である必要があります: {geometry!r}")
    return width, height, match.group(3) or ""


def fit_size(size: tuple[int, int], geometry: str) -> tuple[int, int]:
    """ジオメトリ指定に従って変換後の画像サイズを計算する

    Args:
        size: 元画像の (幅, 高さ)
        geometry: ImageMagick形式のジオメトリ文字列

    Returns:
        変換後の (幅, 高さ)
    """
    width, height, flag = parse_geometry(geometry)
    src_w, src_h = size

    if flag == "!":
        return (width or src_w, height or src_h)

    scales = []
    if width is not None:
        scales.append(width / src_w)
    if height is not None:
        scales.append(height / src_h)
    scale = max(scales) if flag == "^" else min(scales)

    if flag == ">" and scale >= 1:
        return size
    if flag == "<" and scale <= 1:
        return size

    return (max(1, round(src_w * scale)), max(1, round(src_h * scale)))


class ThumbImage:
    """出力パイプライン用の画像ハンドル

    1つの出力の処理中だけ生存し、操作はすべて内部の画像を置き換える形で適用される。

    Attributes:
        source: 読み込み元ファイルのパス
    """

    def __init__(self, image: Image.Image, source: Path | None = None) -> None:
        """ThumbImageを初期化する

        Args:
            image: ラップするPIL.Imageオブジェクト
            source: 読み込み元ファイルのパス
        """
        self._image = image
        self.source = source
        self._format: str | None = None
        self._quality: int | None = None

    @classmethod
    def open(cls, path: Path) -> ThumbImage:
        """画像ファイルを開く

        デコードを即座に行うため、破損ファイルはこの時点で失敗する。

        Args:
            path: 画像ファイルのパス

        Returns:
            画像ハンドル

        Raises:
            FileNotFoundError: ファイルが存在しない場合
            PIL.UnidentifiedImageError: 画像として認識できない場合
            OSError: デコードに失敗した場合
        """
        image = Image.open(path)
        try:
            image.load()
        except Exception:
            image.close()
            raise
        return cls(image, source=Path(path))

    def __enter__(self) -> ThumbImage:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @property
    def image(self) -> Image.Image:
        """現在のPIL.Imageオブジェクトを返す"""
        return self._image

    @property
    def size(self) -> tuple[int, int]:
        """現在の画像サイズを返す"""
        return self._image.size

    @property
    def target_format(self) -> str | None:
        """書き出し時の保存形式を返す"""
        return self._format

    @property
    def target_quality(self) -> int | None:
        """書き出し時の品質値を返す"""
        return self._quality

    def close(self) -> None:
        """画像を解放する"""
        self._image.close()

    def _replace(self, image: Image.Image) -> None:
        if image is not self._image:
            self._image.close()
            self._image = image

    def format(self, ext: str) -> None:
        """保存形式を拡張子で指定する

        Args:
            ext: ドットなしの拡張子（例: "jpg"）

        Raises:
            ValueError: 未対応の拡張子の場合
        """
        key = str(ext).lower().lstrip(".")
        if key not in FORMAT_BY_EXTENSION:
            raise ValueError(f"未対応の出力形式です: {ext!r}")
        self._format = FORMAT_BY_EXTENSION[key]

    def quality(self, quality: int | str) -> None:
        """エンコード品質を指定する

        Args:
            quality: 1〜100の品質値（文字列も可）

        Raises:
            ValueError: 数値でない、または範囲外の場合
        """
        value = int(quality)
        if not 1 <= value <= 100:
            raise ValueError(f"品質は1〜100の範囲で指定してください: {quality!r}")
        self._quality = value

    def resize(self, geometry: str) -> None:
        """ジオメトリ指定に従ってリサイズする

        Args:
            geometry: ImageMagick形式のジオメトリ文字列（例: "320x240>"）
        """
        new_size = fit_size(self._image.size, geometry)
        if new_size != self._image.size:
            self._replace(self._image.resize(new_size, Image.Resampling.LANCZOS))

    def sharpen(self, spec: str | float = "0x1") -> None:
        """アンシャープマスクでシャープ化する

        Args:
            spec: "半径x標準偏差" 形式の文字列、または半径の数値
        """
        match = _SHARPEN_PATTERN.match(str(spec).strip())
        if match is None:
            raise ValueError(f"不正なシャープ指定です: {spec!r}")
        radius = float(match.group(2) or match.group(1))
        self._replace(
            self._filterable().filter(
                ImageFilter.UnsharpMask(radius=max(radius, 0.5), percent=150, threshold=0)
            )
        )

    def normalize(self) -> None:
        """コントラストを正規化する（アルファチャンネルは保持）"""
        image = self._filterable()
        if image.mode in ("RGBA", "LA"):
            alpha = image.getchannel("A")
            base = image.convert("RGB" if image.mode == "RGBA" else "L")
            result = ImageOps.autocontrast(base)
            result.putalpha(alpha)
        else:
            result = ImageOps.autocontrast(image)
        self._replace(result)

    def draw(self, command: str, fill: Any = "black") -> None:
        """描画コマンドを適用する

        現在は "text X,Y '文字列'" のみに対応する。

        Args:
            command: 描画コマンド
            fill: 描画色

        Raises:
            ValueError: 未対応のコマンドの場合
        """
        match = _TEXT_PATTERN.match(command.strip())
        if match is None:
            raise ValueError(f"未対応の描画コマンドです: {command!r}")
        image = self._filterable()
        ImageDraw.Draw(image).text(
            (int(match.group(1)), int(match.group(2))), match.group(4), fill=fill
        )
        self._replace(image)

    def vignette(self, spec: str = "") -> None:
        """画像の周辺を暗くする

        Args:
            spec: "半径x標準偏差+X+Y" 形式の文字列。X/Yは楕円の内側へのオフセット
        """
        match = _VIGNETTE_PATTERN.match(spec.strip())
        if match is None:
            raise ValueError(f"不正なビネット指定です: {spec!r}")
        image = self._filterable()
        width, height = image.size
        sigma = float(match.group(2)) if match.group(2) else max(width, height) / 10
        off_x = min(abs(int(match.group(3) or 0)), (width - 1) // 2)
        off_y = min(abs(int(match.group(4) or 0)), (height - 1) // 2)

        mask = Image.new("L", image.size, 0)
        ImageDraw.Draw(mask).ellipse(
            (off_x, off_y, width - 1 - off_x, height - 1 - off_y), fill=255
        )
        mask = mask.filter(ImageFilter.GaussianBlur(sigma))
        background = Image.new(image.mode, image.size, "black")
        self._replace(Image.composite(image, background, mask))

    def apply(self, name: str, *args: Any) -> None:
        """名前付き操作を適用する

        Args:
            name: 操作名（resize, sharpen, normalize, draw, vignette）
            *args: 操作に渡す引数

        Raises:
            AttributeError: 未対応の操作名の場合
        """
        if name not in NAMED_OPS:
            raise AttributeError(f"未対応の画像操作です: {name!r}")
        getattr(self, name)(*args)

    def write(self, path: Path) -> None:
        """画像をファイルに書き出す

        保存形式が指定されていない場合は書き出し先の拡張子から決定する。

        Args:
            path: 書き出し先パス
        """
        path = Path(path)
        fmt = self._format
        if fmt is None:
            self.format(path.suffix)
            fmt = self._format

        image = self._prepare_for(fmt)
        options: dict[str, Any] = {}
        if fmt in LOSSY_FORMATS and self._quality is not None:
            options["quality"] = self._quality

        path.parent.mkdir(parents=True, exist_ok=True)
        image.save(path, fmt, **options)

    def _filterable(self) -> Image.Image:
        """フィルタ適用可能なモードの画像を返す"""
        image = self._image
        if image.mode == "P":
            return image.convert("RGBA" if "transparency" in image.info else "RGB")
        if image.mode in ("1", "I", "I;16", "F"):
            return image.convert("L")
        if image.mode == "CMYK":
            return image.convert("RGB")
        if image.mode == "PA":
            return image.convert("RGBA")
        if image.mode not in ("L", "LA", "RGB", "RGBA"):
            return image.convert("RGB")
        return image

    def _prepare_for(self, fmt: str | None) -> Image.Image:
        """保存形式が受け付けるモードに変換した画像を返す"""
        image = self._image
        if fmt == "JPEG":
            if image.mode not in ("RGB", "L", "CMYK"):
                return image.convert("RGB")
        elif fmt == "BMP":
            if image.mode not in ("1", "L", "P", "RGB"):
                return image.convert("RGB")
        elif fmt == "WEBP":
            if image.mode not in ("RGB", "RGBA"):
                has_alpha = "A" in image.mode or "transparency" in image.info
                return image.convert("RGBA" if has_alpha else "RGB")
        elif fmt == "PNG":
            if image.mode not in ("RGB", "RGBA", "L", "LA", "P", "1"):
                return image.convert("RGBA" if "A" in image.mode else "RGB")
        return image
