#!/usr/bin/env python3
"""
Точка входа для запуска site_mapper через командную строку.

Команды:
  crawl URL   Обойти сайт и вывести карту сайта
  config      Показать текущую конфигурацию

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (по умолчанию встроенные значения)
  --limit INT         Макс. число страниц (override max_pages_to_process)
  --concurrency INT   Число параллельных запросов (override max_concurrent_requests)
  --delay MS          Пауза между запросами в мс (override request_delay_ms)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (stdout, если не указан)
  --log-format FORMAT Формат логирования

Пример:
  site-mapper --limit 50 crawl example.com --scan-timeout 120
"""
import asyncio
import sys
from pathlib import Path
from typing import List

import click
from pydantic import ValidationError

from site_mapper import __version__
from site_mapper.config import CrawlerConfig, load_config
from site_mapper.crawler.site_map import SiteMap
from site_mapper.engine import Engine
from site_mapper.exceptions import InvalidRootUrl
from site_mapper.logger import DEFAULT_FORMAT, init_logging
from site_mapper.utils import ensure_scheme

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def format_tree(site_map: SiteMap) -> List[str]:
    """Строки дерева карты сайта: страницы, их ресурсы и формы, затем внешние ссылки."""
    lines: List[str] = []
    pending = set(site_map.pending_queue) - site_map.processed_urls
    roots = [site_map.root_domain]
    if site_map.external_links.children:
        roots.append(site_map.external_links)
    for root in roots:
        for depth, node in root.walk():
            indent = "  " * depth
            mark = " (pending)" if node.url in pending else ""
            lines.append(f"{indent}{node.display_name}{mark}")
            for asset in sorted(node.assets):
                lines.append(f"{indent}  [asset] {asset}")
            for form in sorted(node.form_actions):
                lines.append(f"{indent}  [form] {form}")
    return lines


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='site_mapper, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option('--limit', '-l', 'limit', type=int, default=None,
              help='Макс. число страниц (override max_pages_to_process)')
@click.option('--concurrency', 'concurrency', type=int, default=None,
              help='Число параллельных запросов (override max_concurrent_requests)')
@click.option('--delay', 'delay_ms', type=int, default=None,
              help='Пауза между запросами, мс (override request_delay_ms)')
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stdout, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default=DEFAULT_FORMAT,
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, config_path, limit, concurrency, delay_ms, log_level, log_file, log_format):
    """Группа команд site_mapper CLI."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    try:
        cfg = load_config(config_path) if config_path else CrawlerConfig()
    except Exception as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')

    overrides = {
        'max_pages_to_process': limit,
        'max_concurrent_requests': concurrency,
        'request_delay_ms': delay_ms,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if overrides:
        try:
            cfg = CrawlerConfig(**{**cfg.model_dump(), **overrides})
        except ValidationError as e:
            print_error(f'Неверные параметры: {e}')
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


@cli.command('crawl', context_settings=CONTEXT_SETTINGS)
@click.argument('url')
@click.option(
    '--scan-timeout', 'scan_timeout',
    type=float,
    default=None,
    help='Таймаут всего обхода (секунд)'
)
@click.option('--no-tree', is_flag=True, help='Не печатать дерево, только итог')
@click.pass_context
def crawl(ctx, url, scan_timeout, no_tree):
    """Обойти сайт URL и вывести карту сайта."""
    cfg = ctx.obj['config']
    target = ensure_scheme(url)
    click.echo(f'Crawling {target}')
    try:
        completed = Engine(cfg).start_scan(target, timeout=scan_timeout)
    except InvalidRootUrl as e:
        print_error(f'Некорректный URL: {e}')
    except asyncio.TimeoutError:
        print_error(f'Обход не завершён за {scan_timeout} секунд')
    except Exception as e:
        print_error(f'Ошибка при обходе: {e}')

    if not no_tree and completed.site_map is not None:
        for line in format_tree(completed.site_map):
            click.echo(line)

    status = 'cancelled' if completed.cancelled else 'completed'
    click.echo(
        f'Crawl {status}: {completed.pages_processed} pages, {completed.total_links} links, '
        f'{completed.total_assets} assets, {completed.duration.total_seconds():.1f}s'
    )


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Показать текущую конфигурацию в JSON."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
