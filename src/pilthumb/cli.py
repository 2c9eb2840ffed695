"""CLI entry point for pilthumb."""

from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.table import Table

from pilthumb import __version__
from pilthumb.config import ConfigError, load_config
from pilthumb.converter import ConversionError, Converter
from pilthumb.logger import ConvertLogger, LogConfig, VerboseLevel
from pilthumb.presets import build_web_converter, call_options_for

app = typer.Typer(help="画像からサムネイル等の複数の出力を生成するCLIツール")
console = Console()


def _build_converter(config_file: Path | None, logger: ConvertLogger | None) -> Converter:
    """設定ファイルがあればそこから、なければWeb用プリセットでConverterを構築する"""
    if config_file is None:
        return build_web_converter(logger=logger)
    return load_config(config_file).build_converter(logger=logger)


def _call_options(path: Path, config_file: Path | None, output_format: str | None) -> dict[str, Any]:
    """呼び出し時の設定を作る

    設定ファイル使用時は出力形式を上書きしない。
    """
    options = call_options_for(path)
    if config_file is not None:
        options.pop("format", None)
    if output_format:
        options["format"] = output_format.lower().lstrip(".")
    return options


@app.command()
def convert(
    paths: Annotated[list[Path], typer.Argument(help="変換元画像ファイル")],
    config_file: Annotated[
        Path | None, typer.Option("-c", "--config", help="出力定義の設定ファイル（YAML）")
    ] = None,
    output_format: Annotated[
        str | None, typer.Option("-f", "--format", help="出力形式（拡張子）を固定")
    ] = None,
    keep_source: Annotated[
        bool, typer.Option("--keep-source", help="全出力が成功しても変換元を削除しない")
    ] = False,
    verbose: Annotated[int, typer.Option("-v", "--verbose", count=True, help="詳細ログ出力")] = 0,
    quiet: Annotated[bool, typer.Option("-q", "--quiet", help="エラーのみ出力")] = False,
    log_file: Annotated[Path | None, typer.Option(help="ログファイル出力先")] = None,
) -> None:
    """画像を登録済みの出力に変換する

    すべての出力が成功した変換元ファイルは削除される。
    """
    level = VerboseLevel.QUIET if quiet else VerboseLevel(min(verbose, VerboseLevel.DEBUG))

    with ConvertLogger(LogConfig(verbose_level=level, log_file=log_file)) as logger:
        try:
            converter = _build_converter(config_file, logger)
        except ConfigError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(1) from e

        if not converter.outputs:
            console.print("[red]Error: 出力が定義されていません[/red]")
            raise typer.Exit(1)

        failed = 0
        for path in paths:
            logger.info(str(path))
            try:
                result = converter.convert(path, _call_options(path, config_file, output_format))
            except ConversionError as e:
                logger.error(str(e))
                failed += 1
                continue

            if result is None or not all(info.done for info in result.values()):
                failed += 1
                continue

            source = path.resolve()
            if any(
                info.path is not None and info.path.resolve() == source
                for info in result.values()
            ):
                logger.warning(f"出力が変換元を上書きしたため削除しません: {path}")
                failed += 1
                continue

            if not keep_source:
                try:
                    path.unlink()
                except OSError as e:
                    logger.error(f"変換元を削除できません: {path} ({e})")
                    failed += 1
                    continue
                logger.verbose(f"削除: {path}")

    if failed:
        raise typer.Exit(1)
    raise typer.Exit(0)


@app.command()
def outputs(
    config_file: Annotated[
        Path | None, typer.Option("-c", "--config", help="出力定義の設定ファイル（YAML）")
    ] = None,
) -> None:
    """定義済みの出力を表示する"""
    try:
        converter = _build_converter(config_file, None)
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from e

    table = Table(title="Outputs")
    table.add_column("Key", style="cyan")
    table.add_column("Options", style="green")

    for key, spec in converter.outputs.items():
        options = ", ".join(f"{k}={v}" for k, v in spec.options.items())
        table.add_row(key, options or "-")

    console.print(table)
    raise typer.Exit(0)


def version_callback(value: bool) -> None:
    """バージョン表示コールバック"""
    if value:
        typer.echo(f"pilthumb {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="バージョンを表示する",
        ),
    ] = False,
) -> None:
    """pilthumb CLI - 画像からサムネイルを生成"""
    pass
