"""
结果导出器 - 将提取文本写为文件

职责：
1. 纯文本导出（UTF-8 .txt）
2. Word 兼容导出（HTML 包装的 .doc，默认从右到左）
3. 摘要导出

测试要点：
- test_write_text: 文本原样写出
- test_write_word_html: 换行转 <br />，HTML 转义
"""

from __future__ import annotations

import html
from pathlib import Path

from ..config import RuntimeConfig, get_config

WORD_TEMPLATE = """<!DOCTYPE html>
<html lang="{lang}" dir="{dir}">
  <head>
    <meta charset="UTF-8">
    <title>{title}</title>
  </head>
  <body>
    {body}
  </body>
</html>
"""


class ResultExporter:
    """结果导出器实现"""

    def __init__(self, config: RuntimeConfig | None = None):
        self.config = (config or get_config()).export

    def write_text(self, text: str, output_dir: Path, filename: str | None = None) -> Path:
        """导出纯文本"""
        path = self._target(output_dir, filename or self.config.text_filename)
        path.write_text(text, encoding="utf-8")
        return path

    def write_word(self, text: str, output_dir: Path, filename: str | None = None) -> Path:
        """导出 Word 兼容文档"""
        path = self._target(output_dir, filename or self.config.word_filename)
        path.write_text(self.to_word_html(text), encoding="utf-8")
        return path

    def write_summary(self, summary: str, output_dir: Path) -> Path:
        """导出摘要"""
        return self.write_text(summary, output_dir, self.config.summary_filename)

    def to_word_html(self, text: str, title: str = "提取文本") -> str:
        body = html.escape(text).replace("\n", "<br />\n")
        return WORD_TEMPLATE.format(
            lang=self.config.html_lang,
            dir=self.config.html_dir,
            title=html.escape(title),
            body=body,
        )

    @staticmethod
    def _target(output_dir: Path, filename: str) -> Path:
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        return output_dir / filename
