# site_mirror/report/json_report.py

"""
Генерация JSON-отчёта для проекта SiteMirror.

Сериализация объекта CrawlReport в ``<output_dir>/crawl-report.json``.
"""
import json
from pathlib import Path
from typing import Any, Dict, Union

from site_mirror.report import REPORT_FILENAME, CrawlReport


def render_json(report: CrawlReport, output_dir: Union[Path, str]) -> Path:
    """
    Сохраняет отчёт report в формате JSON в каталог output_dir.

    :param report: объект CrawlReport с данными обхода
    :param output_dir: каталог офлайн-копии
    :return: Path сохранённого файла

    Пример:
    ```python
    from site_mirror.report.json_report import render_json
    report_path = render_json(report, 'dist')
    print(f"JSON report saved to: {report_path}")
    ```
    """
    output = Path(output_dir) / REPORT_FILENAME
    output.parent.mkdir(parents=True, exist_ok=True)

    with output.open('w', encoding='utf-8') as f:
        json.dump(report.to_dict(), f, ensure_ascii=False, indent=2)

    return output


def load_json(path: Union[Path, str]) -> Dict[str, Any]:
    """Читает ранее сохранённый отчёт."""
    with Path(path).open(encoding='utf-8') as f:
        return json.load(f)
