"""変換の共通データ型モジュール

Converterが扱う出力定義、出力ごとの変換結果、エラー型を定義する。
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pilthumb.config import ThumbConfig
    from pilthumb.converter.image import ThumbImage

# フック・変換処理の型エイリアス
ImageProc = Callable[["ThumbImage", "ThumbConfig"], Any]


class ConversionError(Exception):
    """変換全体を続行できないエラー

    変換元ファイルが存在しない、または読み取れない場合に送出される。
    出力ごとの失敗はこの例外ではなくOutputResultに記録される。
    """

    pass


@dataclass(frozen=True)
class OutputSpec:
    """出力定義

    Attributes:
        key: 出力の一意キー
        options: 出力固有の設定
        transform: 出力固有の変換処理（Noneの場合は何もしない）
    """

    key: str
    options: dict[str, Any] = field(default_factory=dict)
    transform: ImageProc | None = None


@dataclass(frozen=True)
class OutputResult:
    """出力1件分の変換結果を表すデータクラス

    Attributes:
        key: 出力キー
        done: 変換が成功したか
        path: 書き出し先のパス（成功時のみ）
        error: 捕捉した例外（失敗時のみ）
    """

    key: str
    done: bool
    path: Path | None = None
    error: Exception | None = None

    @classmethod
    def success(cls, key: str, path: Path) -> OutputResult:
        """成功結果を生成する"""
        return cls(key=key, done=True, path=path)

    @classmethod
    def failure(cls, key: str, error: Exception) -> OutputResult:
        """失敗結果を生成する"""
        return cls(key=key, done=False, error=error)

    @property
    def message(self) -> str:
        """結果の説明文を返す

        Returns:
            成功時は書き出し先パス、失敗時は例外の内容
        """
        if self.done:
            return str(self.path)
        if self.error is None:
            return ""
        text = str(self.error)
        return f"{type(self.error).__name__}: {text}" if text else type(self.error).__name__


# convert()の戻り値: 出力キー -> 結果
ConversionResult = dict[str, OutputResult]
