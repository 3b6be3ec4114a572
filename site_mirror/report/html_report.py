# File: site_mirror/report/html_report.py
"""site_mirror.report.html_report: Генерация HTML-сводки обхода с помощью Jinja2."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Union

from jinja2 import Environment, PackageLoader, select_autoescape

from site_mirror.report import CrawlReport

TEMPLATE_NAME = "report.html.j2"


def _environment() -> Environment:
    return Environment(
        loader=PackageLoader("site_mirror", "templates"),
        autoescape=select_autoescape(["html", "xml", "j2"]),
    )


def render_html(report: CrawlReport, output_path: Union[Path, str]) -> Path:
    """Рендерит HTML-сводку и сохраняет её по указанному пути.

    Ссылки на сохранённые страницы строятся относительно каталога сводки,
    поэтому файл удобно класть рядом с зеркалом.

    Args:
        report: объект CrawlReport.
        output_path: путь к итоговому HTML-файлу.

    Returns:
        Path до сохранённого HTML-файла.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    mirror_root = Path(report.output_dir).resolve()
    try:
        prefix = Path(os.path.relpath(mirror_root, output_path.parent.resolve())).as_posix()
    except ValueError:
        # different drives on Windows
        prefix = mirror_root.as_uri()

    context: dict[str, Any] = {
        "report": report,
        "stats": report.to_dict()["statistics"],
        "link_prefix": "" if prefix == "." else prefix.rstrip("/") + "/",
    }

    template = _environment().get_template(TEMPLATE_NAME)
    output_path.write_text(template.render(**context), encoding="utf-8")
    return output_path
