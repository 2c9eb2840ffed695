"""ログ出力のインターフェース定義

このモジュールは、pilthumbの変換結果のログ出力を定義する。
VerboseLevel (詳細ログレベル)に応じた出力制御を行い、
ファイルへのログ出力にも対応する。
"""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

if TYPE_CHECKING:
    from pilthumb.converter.base import OutputResult


class VerboseLevel(IntEnum):
    """詳細ログレベル

    ログ出力の詳細度を制御するための列挙型。
    QUIET: エラーのみ出力
    NORMAL: 変換結果のパスを出力
    VERBOSE: 出力ごとの成否も出力（-vオプション）
    DEBUG: 適用した設定も出力（-vvオプション）
    """

    QUIET = -1
    NORMAL = 0
    VERBOSE = 1
    DEBUG = 2


@dataclass
class LogConfig:
    """ログ設定

    Attributes:
        verbose_level: ログの詳細度レベル
        log_file: ログ出力先ファイルパス（Noneの場合はファイル出力なし）
        use_color: カラー出力を使用するか
    """

    verbose_level: VerboseLevel = VerboseLevel.NORMAL
    log_file: Path | None = None
    use_color: bool = True


class ConvertLogger:
    """変換ログ出力クラス

    VerboseLevelに応じてメッセージのフィルタリングを行う。

    使用例:
        >>> config = LogConfig(verbose_level=VerboseLevel.VERBOSE)
        >>> with ConvertLogger(config) as logger:
        ...     logger.info("photo.jpg")
    """

    _ANSI_ESCAPE_PATTERN = re.compile(r"\x1b\[[0-9;]*m")

    def __init__(self, config: LogConfig | None = None) -> None:
        """ロガーを初期化する

        Args:
            config: ログ設定（Noneの場合はデフォルト設定）
        """
        self._config = config or LogConfig()
        self._log_file: TextIO | None = None
        if self._config.log_file:
            # クラス自体がコンテキストマネージャとして動作し、__exit__でファイルを閉じる
            self._log_file = open(self._config.log_file, "w", encoding="utf-8")  # noqa: SIM115

    def __enter__(self) -> ConvertLogger:
        """コンテキストマネージャのエントリポイント"""
        return self

    def __exit__(self, *args: object) -> None:
        """コンテキストマネージャの終了処理"""
        self.close()

    def close(self) -> None:
        """ログファイルを閉じる"""
        if self._log_file:
            self._log_file.close()
            self._log_file = None

    @property
    def config(self) -> LogConfig:
        """ログ設定を取得する"""
        return self._config

    def _print(self, message: str, file: TextIO | None = None) -> None:
        if file is None:
            file = sys.stdout
        if not self._config.use_color:
            message = self._strip_ansi(message)
        print(message, file=file)

    def _log_to_file(self, level: str, message: str) -> None:
        if self._log_file:
            timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            clean_message = self._strip_ansi(message)
            self._log_file.write(f"[{timestamp}] {level}: {clean_message}\n")
            self._log_file.flush()

    def _strip_ansi(self, text: str) -> str:
        return self._ANSI_ESCAPE_PATTERN.sub("", text)

    def info(self, message: str) -> None:
        """情報メッセージを出力する（NORMAL以上）"""
        if self._config.verbose_level >= VerboseLevel.NORMAL:
            self._print(message)
        self._log_to_file("INFO", message)

    def verbose(self, message: str) -> None:
        """詳細メッセージを出力する（VERBOSE以上）"""
        if self._config.verbose_level >= VerboseLevel.VERBOSE:
            self._print(message)
        self._log_to_file("VERBOSE", message)

    def debug(self, message: str) -> None:
        """デバッグメッセージを出力する（DEBUG以上）"""
        if self._config.verbose_level >= VerboseLevel.DEBUG:
            self._print(message)
        self._log_to_file("DEBUG", message)

    def error(self, message: str) -> None:
        """エラーメッセージを標準エラー出力に出力する（常に出力）"""
        self._print(f"ERROR: {message}", file=sys.stderr)
        self._log_to_file("ERROR", message)

    def warning(self, message: str) -> None:
        """警告メッセージを出力する（QUIET以上）"""
        if self._config.verbose_level > VerboseLevel.QUIET:
            self._print(f"警告: {message}", file=sys.stderr)
        self._log_to_file("WARNING", message)

    def log_output(self, result: OutputResult) -> None:
        """出力1件分の変換結果をログする

        成功時は書き出し先パスをNORMAL以上で、失敗時はエラーを常に出力する。

        Args:
            result: 出力の変換結果
        """
        if result.done:
            self.info(str(result.path))
        else:
            self.error(f"({result.key}) {result.message}")
