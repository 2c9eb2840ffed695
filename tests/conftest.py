"""共通フィクスチャ"""

from pathlib import Path

import pytest
from PIL import Image


def create_test_image(
    path: Path,
    *,
    size: tuple[int, int] = (640, 480),
    mode: str = "RGB",
    color: tuple[int, ...] | int = (200, 120, 40),
) -> Path:
    """テスト用の単色画像を書き出す

    Args:
        path: 書き出し先（拡張子で形式を決定）
        size: 画像サイズ
        mode: 画像モード
        color: 塗りつぶし色

    Returns:
        書き出したファイルのパス
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new(mode, size, color).save(path)
    return path


@pytest.fixture
def source_image(tmp_path: Path) -> Path:
    """640x480のJPEG画像"""
    return create_test_image(tmp_path / "src" / "photo.jpg")


@pytest.fixture
def png_image(tmp_path: Path) -> Path:
    """320x200のRGBA PNG画像"""
    return create_test_image(
        tmp_path / "src" / "icon.png", size=(320, 200), mode="RGBA", color=(10, 20, 30, 128)
    )


@pytest.fixture
def make_image(tmp_path: Path):
    """tmp_path配下にテスト画像を作るファクトリ"""

    def factory(name: str, **kwargs) -> Path:
        return create_test_image(tmp_path / name, **kwargs)

    return factory
