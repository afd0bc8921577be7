"""Plain-text extraction for every supported upload format."""

import csv
import json
import logging
import zipfile
from pathlib import Path
from typing import Any, Callable, Dict, List
from xml.etree import ElementTree

import mistune
from components.knowledge_service.models import SupportedFormat
from shared.errors import InvalidInputError

logger = logging.getLogger(__name__)

MAX_FILE_SIZE_BYTES = 100 * 1024 * 1024

SUPPORTED_FORMATS: Dict[str, str] = {
    ".txt": "Plain Text",
    ".pdf": "PDF Document",
    ".docx": "Word Document (2007+)",
    ".doc": "Word Document (97-2003)",
    ".csv": "CSV Spreadsheet",
    ".xlsx": "Excel Spreadsheet (2007+)",
    ".xls": "Excel Spreadsheet (97-2003)",
    ".md": "Markdown Document",
    ".pptx": "PowerPoint Presentation",
    ".json": "JSON Data File",
}

_DRAWINGML_NS = "{http://schemas.openxmlformats.org/drawingml/2006/main}"


def supported_formats() -> List[SupportedFormat]:
    """List the accepted formats with their display names and size limit."""
    max_mb = MAX_FILE_SIZE_BYTES // (1024 * 1024)
    return [
        SupportedFormat(extension=ext, name=name, max_size_mb=max_mb)
        for ext, name in SUPPORTED_FORMATS.items()
    ]


def extract_txt(path: Path) -> str:
    return path.read_text(encoding="utf-8", errors="replace")


class MarkdownTextExtractor:
    """Reduces Markdown to plain text by walking the mistune AST."""

    def __init__(self) -> None:
        self.markdown_parser = mistune.create_markdown(renderer="ast")

    def __call__(self, path: Path) -> str:
        content = path.read_text(encoding="utf-8", errors="replace")
        ast = self.markdown_parser(content)
        if isinstance(ast, str):
            return ast
        if isinstance(ast, list):
            blocks = [self._node_text(node) for node in ast if isinstance(node, dict)]
            return "\n\n".join(block for block in blocks if block.strip())
        return ""

    def _children_text(self, children: List[Any]) -> str:
        parts = []
        for child in children:
            if isinstance(child, dict):
                parts.append(self._node_text(child))
            elif isinstance(child, str):
                parts.append(child)
        return "".join(parts)

    def _node_text(self, node: Dict[str, Any]) -> str:
        node_type = node.get("type", "")

        if node_type in ("text", "codespan", "inline_html"):
            return str(node.get("raw", "") or "")
        if node_type == "block_code":
            return str(node.get("raw", node.get("text", "")) or "")
        if node_type in ("softbreak", "linebreak"):
            return "\n"
        if node_type == "image":
            return self._children_text(node.get("children", []))
        if node_type == "list":
            items = [
                self._node_text(item)
                for item in node.get("children", [])
                if isinstance(item, dict)
            ]
            return "\n".join(items)

        return self._children_text(node.get("children", []))


extract_markdown = MarkdownTextExtractor()


def json_to_text(value: Any) -> str:
    """Flatten a JSON value into ``key: value`` lines."""
    if isinstance(value, dict):
        return "\n".join(f"{k}: {json_to_text(v)}" for k, v in value.items())
    if isinstance(value, list):
        return "\n".join(json_to_text(v) for v in value)
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def extract_json(path: Path) -> str:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidInputError(f"Invalid JSON file: {e}") from e
    return json_to_text(data)


def extract_csv(path: Path) -> str:
    lines = [f"Document: {path.name}", ""]
    with open(path, "r", encoding="utf-8", errors="replace", newline="") as f:
        reader = csv.reader(f)
        header = next(reader, None)
        if header is not None:
            lines.append(" | ".join(header))
            lines.append("---")
        for row in reader:
            lines.append(" | ".join(row))
    return "\n".join(lines) + "\n"


def extract_xlsx(path: Path) -> str:
    from openpyxl import load_workbook

    workbook = load_workbook(path, read_only=True, data_only=True)
    try:
        sections = []
        for sheet in workbook.worksheets:
            rows = []
            for row in sheet.iter_rows(values_only=True):
                if all(cell is None for cell in row):
                    continue
                rows.append(" | ".join("" if c is None else str(c) for c in row))
            sections.append(f"Sheet: {sheet.title}\n" + "\n".join(rows))
        return "\n\n".join(sections)
    finally:
        workbook.close()


def extract_pdf(path: Path) -> str:
    from pypdf import PdfReader

    reader = PdfReader(str(path))
    pages = []
    for page_num, page in enumerate(reader.pages, start=1):
        page_text = page.extract_text() or ""
        if page_text.strip():
            pages.append(page_text)
        else:
            logger.debug(f"No extractable text on page {page_num} of {path.name}")
    return "\n\n".join(pages)


def extract_docx(path: Path) -> str:
    from docx import Document

    doc = Document(str(path))
    parts = [p.text for p in doc.paragraphs if p.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells]
            if any(cells):
                parts.append(" | ".join(cells))
    return "\n".join(parts)


def _slide_number(name: str) -> int:
    stem = Path(name).stem
    digits = stem[len("slide") :]
    return int(digits) if digits.isdigit() else 0


def extract_pptx(path: Path) -> str:
    try:
        with zipfile.ZipFile(path) as archive:
            slide_names = sorted(
                (
                    n
                    for n in archive.namelist()
                    if n.startswith("ppt/slides/slide") and n.endswith(".xml")
                ),
                key=_slide_number,
            )
            slides = []
            for index, name in enumerate(slide_names, start=1):
                root = ElementTree.fromstring(archive.read(name))
                runs = [el.text for el in root.iter(f"{_DRAWINGML_NS}t") if el.text]
                if runs:
                    slides.append(f"Slide {index}:\n" + " ".join(runs))
    except zipfile.BadZipFile as e:
        raise InvalidInputError(f"Invalid PowerPoint file: {e}") from e
    return "\n\n".join(slides)


def _legacy_format(extension: str, modern: str) -> Callable[[Path], str]:
    def reject(path: Path) -> str:
        raise InvalidInputError(
            f"Legacy {extension} files are not supported. "
            f"Please convert {path.name} to {modern} and upload again."
        )

    return reject


EXTRACTORS: Dict[str, Callable[[Path], str]] = {
    ".txt": extract_txt,
    ".md": extract_markdown,
    ".json": extract_json,
    ".csv": extract_csv,
    ".xlsx": extract_xlsx,
    ".pdf": extract_pdf,
    ".docx": extract_docx,
    ".pptx": extract_pptx,
    ".doc": _legacy_format(".doc", ".docx"),
    ".xls": _legacy_format(".xls", ".xlsx"),
}


def extract_text(path: Path, extension: str) -> str:
    """Extract plain text from ``path`` using the extractor for ``extension``."""
    extractor = EXTRACTORS.get(extension)
    if extractor is None:
        raise InvalidInputError(f"Unsupported file type: {extension}")
    try:
        return extractor(path)
    except InvalidInputError:
        raise
    except Exception as e:
        logger.error(f"Failed to extract text from {path.name}: {e}")
        raise InvalidInputError(f"Could not read {path.name}: {e}") from e
