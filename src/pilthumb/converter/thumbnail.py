"""サムネイル変換モジュール

1つの変換元画像から、登録された名前付き出力（サムネイル、フルサイズ等）を生成するConverterを提供する。

設定は次の順にマージされる（後ろほど優先度が高い）:
    インスタンス既定値 -> 出力固有の設定 -> convert()呼び出し時の設定
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from pilthumb.config import ThumbConfig, builtin_defaults, merge_options
from pilthumb.converter.base import (
    ConversionError,
    ConversionResult,
    ImageProc,
    OutputResult,
    OutputSpec,
)
from pilthumb.converter.image import ThumbImage

if TYPE_CHECKING:
    from collections.abc import Callable

    from pilthumb.logger import ConvertLogger


class Converter:
    """サムネイル変換クラス

    設定の既定値、名前付き出力のレジストリ、前処理・後処理フックを保持し、
    convert()で登録済みのすべての出力を生成する。

    設定で内部的に使用されるキー:
        format: 出力形式（ドットなし拡張子、例: "jpg"）
        quality: エンコード品質（例: "80"）
        path: 出力先ディレクトリ（Noneの場合は変換元と同じディレクトリ）
        basename: 出力ファイル名の幹（Noneの場合は変換元の名前）
        prefix: ファイル名の先頭に付ける文字列
        suffix: 拡張子の直前に付ける文字列（Noneの場合は "_" + 出力キー）

    上記以外のキーはフック・変換処理にそのまま渡される。

    使用例:
        >>> conv = Converter()
        >>> conv.add_output("thumb", transform=lambda img, cfg: img.resize("320x240>"))
        >>> result = conv.convert("photo.jpg")

    Attributes:
        config: 現在のインスタンス設定（変更可能）
    """

    def __init__(
        self,
        config: Mapping[str, Any] | None = None,
        logger: ConvertLogger | None = None,
    ) -> None:
        """Converterを初期化する

        Args:
            config: インスタンス設定。reset()時の既定値として保持される
            logger: 変換結果の出力先ロガー
        """
        self._default = dict(config or {})
        self._logger = logger
        self.config: dict[str, Any] = {}
        self._before: ImageProc | None = None
        self._after: ImageProc | None = None
        self._outputs: dict[str, OutputSpec] = {}
        self.reset()

    def reset(self) -> dict[str, Any]:
        """インスタンスを既定の状態に戻す

        フックと出力を破棄し、設定を組み込み既定値とコンストラクタ引数のマージ結果に戻す。

        Returns:
            復元された設定
        """
        self._before = None
        self._after = None
        self._outputs = {}
        self.config = merge_options(builtin_defaults(), self._default)
        return self.config

    def preprocess(self, proc: ImageProc) -> ImageProc:
        """前処理フックを設定する

        デコレータとしても使用できる。

        Args:
            proc: (画像, 設定) を受け取る処理

        Returns:
            設定した処理
        """
        self._before = proc
        return proc

    def del_preprocess(self) -> None:
        """前処理フックを削除する"""
        self._before = None

    def has_preprocess(self) -> bool:
        """前処理フックが設定されているかを返す"""
        return self._before is not None

    def postprocess(self, proc: ImageProc) -> ImageProc:
        """後処理フックを設定する

        デコレータとしても使用できる。

        Args:
            proc: (画像, 設定) を受け取る処理

        Returns:
            設定した処理
        """
        self._after = proc
        return proc

    def del_postprocess(self) -> None:
        """後処理フックを削除する"""
        self._after = None

    def has_postprocess(self) -> bool:
        """後処理フックが設定されているかを返す"""
        return self._after is not None

    def add_output(
        self,
        key: str,
        options: Mapping[str, Any] | None = None,
        transform: ImageProc | None = None,
    ) -> OutputSpec:
        """出力を登録する

        同じキーが登録済みの場合は上書きする（登録順の位置は維持される）。

        Args:
            key: 出力の一意キー
            options: 出力固有の設定
            transform: 出力固有の変換処理（省略時は何もしない）

        Returns:
            登録したOutputSpec
        """
        spec = OutputSpec(key=key, options=dict(options or {}), transform=transform)
        self._outputs[key] = spec
        return spec

    def output(
        self, key: str, options: Mapping[str, Any] | None = None
    ) -> Callable[[ImageProc], ImageProc]:
        """変換処理を出力として登録するデコレータを返す"""

        def decorator(proc: ImageProc) -> ImageProc:
            self.add_output(key, options, proc)
            return proc

        return decorator

    def del_output(self, key: str) -> OutputSpec | None:
        """出力を削除する

        Args:
            key: 出力キー

        Returns:
            削除したOutputSpec。未登録の場合はNone
        """
        return self._outputs.pop(key, None)

    @property
    def outputs(self) -> Mapping[str, OutputSpec]:
        """登録済みの出力（読み取り専用ビュー）"""
        return MappingProxyType(self._outputs)

    def convert(
        self, path: str | os.PathLike[str], options: Mapping[str, Any] | None = None
    ) -> ConversionResult | None:
        """画像を登録済みのすべての出力に変換する

        変換元ファイルが読み取れない場合はConversionErrorを送出するが、
        それ以外のエラーでは例外を送出せず、出力ごとの結果に記録する。

        Args:
            path: 変換元ファイルのパス
            options: この呼び出しに限り優先される設定

        Returns:
            出力キーから結果へのマッピング。出力が1つも登録されていない場合はNone

        Raises:
            ConversionError: 変換元ファイルが読み取れない場合
        """
        if not self._outputs:
            return None

        source = Path(os.path.abspath(path))
        if not source.is_file() or not os.access(source, os.R_OK):
            raise ConversionError(f"ファイルを読み取れません: {source}")

        results: ConversionResult = {}
        for key, spec in list(self._outputs.items()):
            config = self.resolve_config(source, key, spec.options, options)
            output = self.output_path(config)
            if self._logger is not None:
                self._logger.debug(f"({key}) 設定: {config.to_dict()}")
            result = self._run_output(source, output, spec, config)
            results[key] = result
            self._log_result(result)

        return results

    def resolve_config(
        self,
        source: Path,
        key: str,
        output_options: Mapping[str, Any] | None = None,
        call_options: Mapping[str, Any] | None = None,
    ) -> ThumbConfig:
        """出力1件分の設定を計算する

        Args:
            source: 変換元ファイルの絶対パス
            key: 出力キー
            output_options: 出力固有の設定
            call_options: 呼び出し時の設定

        Returns:
            path/basename/suffixを補完済みの設定
        """
        merged = merge_options(self.config, output_options, call_options)
        if merged.get("path") is None:
            merged["path"] = source.parent
        if merged.get("basename") is None:
            merged["basename"] = source.stem
        if merged.get("suffix") is None:
            merged["suffix"] = f"_{key}"
        return ThumbConfig.from_mapping(merged)

    @staticmethod
    def output_path(config: ThumbConfig) -> Path:
        """出力ファイルのパスを計算する

        Args:
            config: 補完済みの設定

        Returns:
            path / (prefix + basename + suffix + "." + format)
        """
        filename = f"{config.prefix}{config.basename}{config.suffix}.{config.format}"
        return Path(str(config.path)) / filename

    def _run_output(
        self, source: Path, output: Path, spec: OutputSpec, config: ThumbConfig
    ) -> OutputResult:
        """出力1件分のパイプラインを実行する

        フックや変換処理内のバグも含め、すべての例外をこの出力の失敗として記録する。
        """
        try:
            with ThumbImage.open(source) as img:
                self._call(self._before, img, config)
                img.format(config.format)
                self._call(spec.transform, img, config)
                self._call(self._after, img, config)
                img.quality(config.quality)
                img.write(output)
        except Exception as e:
            return OutputResult.failure(spec.key, e)
        return OutputResult.success(spec.key, output)

    @staticmethod
    def _call(proc: Callable[..., Any] | None, img: ThumbImage, config: ThumbConfig) -> None:
        if proc is not None:
            proc(img, config)

    def _log_result(self, result: OutputResult) -> None:
        if self._logger is None:
            return
        self._logger.log_output(result)
