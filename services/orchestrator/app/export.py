"""Printable HTML and DOCX renderings of a project."""

from __future__ import annotations

import html
import io
import logging

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.image.exceptions import UnrecognizedImageError
from docx.shared import Inches, Pt

from lumina_providers import decode_data_url
from lumina_schemas import Project

logger = logging.getLogger(__name__)

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

_PRINT_CSS = """
body { font-family: 'Plus Jakarta Sans', sans-serif; margin: 0; padding: 0; background: #fff; color: #1a1a1a; }
.page { width: 100%; min-height: 100vh; page-break-after: always; display: flex; flex-direction: column;
        align-items: center; justify-content: center; position: relative; padding: 40px; box-sizing: border-box; }
.title-page { text-align: center; }
.title-page h1 { font-size: 4rem; margin-bottom: 1rem; font-weight: 800; }
.title-page p { font-size: 1.5rem; color: #666; text-transform: uppercase; letter-spacing: 4px; }
.content-img { width: 100%; max-height: 60vh; object-fit: contain; margin-bottom: 40px; }
.caption { font-style: italic; font-size: 2rem; text-align: center; max-width: 800px; color: #333; }
.page-num { position: absolute; bottom: 40px; right: 40px; font-weight: 800; color: #ccc; }
""".strip()


def render_html(project: Project) -> str:
    """Return a self-contained HTML document with one printed page per story page."""

    title = html.escape(project.title)
    parts = [
        "<!DOCTYPE html>",
        "<html>",
        "<head>",
        '<meta charset="utf-8" />',
        f"<title>{title} - Lumina Studio Export</title>",
        f"<style>{_PRINT_CSS}</style>",
        "</head>",
        "<body>",
        '<div class="page title-page">',
        f"<h1>{title}</h1>",
        f"<p>{html.escape(project.genre.value)} &bull; {html.escape(project.style.value)}</p>",
        "</div>",
    ]
    for number, page in enumerate(project.pages, start=1):
        parts.extend(
            [
                '<div class="page">',
                f'<img src="{html.escape(page.image_url, quote=True)}" class="content-img" alt="Page {number}" />',
                f'<div class="caption">&ldquo;{html.escape(page.caption)}&rdquo;</div>',
                f'<div class="page-num">{number}</div>',
                "</div>",
            ]
        )
    parts.extend(["</body>", "</html>"])
    return "\n".join(parts)


def render_docx(project: Project) -> bytes:
    """Build a Word document; embedded images are included, remote ones are referenced."""

    document = Document()
    heading = document.add_heading(project.title, level=0)
    heading.alignment = WD_ALIGN_PARAGRAPH.CENTER
    subtitle = document.add_paragraph(f"{project.genre.value} • {project.style.value}")
    subtitle.alignment = WD_ALIGN_PARAGRAPH.CENTER

    for number, page in enumerate(project.pages, start=1):
        document.add_page_break()
        _add_image(document, page.image_url, number)
        caption = document.add_paragraph()
        caption.alignment = WD_ALIGN_PARAGRAPH.CENTER
        run = caption.add_run(page.caption)
        run.italic = True
        run.font.size = Pt(16)
        footer = document.add_paragraph(str(number))
        footer.alignment = WD_ALIGN_PARAGRAPH.RIGHT

    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def _add_image(document, image_url: str, number: int) -> None:
    media = decode_data_url(image_url)
    if media is None:
        document.add_paragraph(f"Image: {image_url}")
        return
    try:
        document.add_picture(io.BytesIO(media.data), width=Inches(6))
    except UnrecognizedImageError:
        logger.warning("Skipping unreadable image in export", extra={"page_index": number - 1})
        document.add_paragraph(f"[Image for page {number} unavailable]")
        return
    document.paragraphs[-1].alignment = WD_ALIGN_PARAGRAPH.CENTER
