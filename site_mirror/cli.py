#!/usr/bin/env python3
"""
Точка входа для запуска SiteMirror через командную строку.

Команды:
  mirror    Обойти сайт, сохранить офлайн-копию и crawl-report.json
  config    Показать итоговую конфигурацию (файл + флаги) в JSON

Опции зеркалирования (общие для mirror и config):
  --url, -u URL           Стартовый URL
  --output, -o DIR        Каталог вывода (default: dist)
  --depth, -d INT         Максимальная глубина обхода (default: 5)
  --concurrency, -n INT   Число сессий браузера (default: 10)
  --headless/--no-headless
  --prefix, -p PATH       Обходить только пути с этим префиксом (например /docs)
  --config, -c PATH       YAML/JSON-конфиг; флаги имеют приоритет

Общие опции:
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (stdout, если не указан)
  --log-format FMT    Строка формата для логов
  --version, -v       Показать версию SiteMirror

Пример:
  site-mirror mirror -u https://example.com -o ./offline -d 3 -p /docs
"""
import asyncio
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from site_mirror import __version__
from site_mirror.config import MirrorConfig, load_config
from site_mirror.engine import start_mirror
from site_mirror.errors import PoolExhaustedError
from site_mirror.logger import DEFAULT_FORMAT, init_logging
from site_mirror.report.html_report import render_html

CONTEXT_SETTINGS = dict(help_option_names=["--help", "-h"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def mirror_options(func):
    """Опции, которые переопределяют значения из конфиг-файла."""
    options = [
        click.option(
            '--config', '-c', 'config_path',
            default=None,
            type=click.Path(exists=True, dir_okay=False, path_type=Path),
            help='YAML/JSON-конфиг; флаги командной строки имеют приоритет.'
        ),
        click.option('--url', '-u', 'base_url', default=None, help='Стартовый URL для зеркалирования.'),
        click.option(
            '--output', '-o', 'output_dir',
            default=None,
            type=click.Path(file_okay=False, path_type=Path),
            help='Каталог вывода  [default: dist]'
        ),
        click.option(
            '--depth', '-d', 'max_depth',
            default=None,
            type=click.IntRange(min=1),
            help='Максимальная глубина обхода  [default: 5]'
        ),
        click.option(
            '--concurrency', '-n', 'max_concurrency',
            default=None,
            type=click.IntRange(min=1),
            help='Число параллельных сессий браузера  [default: 10]'
        ),
        click.option(
            '--headless/--no-headless', 'headless',
            default=None,
            help='Запускать браузер без окна  [default: headless]'
        ),
        click.option('--prefix', '-p', 'prefix', default=None, help='Обходить только пути с этим префиксом.'),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _build_config(config_path, **overrides) -> MirrorConfig:
    try:
        return load_config(config_path, **overrides)
    except ValidationError as e:
        print_error(f'Ошибка конфигурации:\n{e}')
    except Exception as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='SiteMirror, version %(version)s')
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stdout, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default=DEFAULT_FORMAT,
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, log_level, log_file, log_format):
    """SiteMirror: офлайн-копия сайта с рабочей навигацией."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    ctx.ensure_object(dict)


@cli.command('mirror', context_settings=CONTEXT_SETTINGS)
@mirror_options
@click.option(
    '--html', 'html_output',
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help='Дополнительно сохранить HTML-сводку в файл'
)
def mirror(config_path, html_output, **overrides):
    """Обойти сайт и сохранить офлайн-копию."""
    cfg = _build_config(config_path, **overrides)
    click.echo(f'Mirroring {cfg.base_url} -> {cfg.output_dir}')
    try:
        report = asyncio.run(start_mirror(cfg))
    except PoolExhaustedError as e:
        print_error(f'Не удалось запустить браузер: {e}')
    except Exception as e:
        print_error(f'Ошибка при зеркалировании: {e}')

    stats = report.to_dict()['statistics']
    click.echo(
        f"Pages: {stats['savedPages']}/{stats['totalPages']}, "
        f"assets: {stats['savedAssets']}/{stats['totalAssets']}"
    )
    click.echo(f"Report: {Path(cfg.output_dir) / 'crawl-report.json'}")

    if html_output:
        try:
            saved_html = render_html(report, html_output)
            click.echo(f'HTML report: {saved_html}')
        except Exception as e:
            print_error(f'Ошибка при сохранении HTML: {e}')


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@mirror_options
def show_config(config_path, **overrides):
    """Показать итоговую конфигурацию в JSON."""
    cfg = _build_config(config_path, **overrides)
    click.echo(cfg.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
