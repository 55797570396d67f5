"""Tests for the printable project exports."""

import io

from docx import Document

from lumina_providers.mock import MOCK_IMAGE_DATA_URL
from lumina_schemas import ArtStyle, Project, ProjectGenre, StoryPage

from services.orchestrator.app.export import render_docx, render_html


def _project() -> Project:
    return Project(
        title="Fox & <Friends>",
        genre=ProjectGenre.KIDS,
        style=ArtStyle.WATERCOLOR,
        pages=[
            StoryPage(image_prompt="fox", image_url="https://images.test/0.png", caption="The fox wakes."),
            StoryPage(image_prompt="owl", image_url="https://images.test/1.png", caption='The owl says "hi".'),
        ],
    )


def test_html_export_has_title_page_and_one_page_per_frame() -> None:
    html = render_html(_project())

    assert "<h1>Fox &amp; &lt;Friends&gt;</h1>" in html
    assert "Kids &bull; Watercolor Painting" in html
    assert html.count('class="page"') == 2
    assert '<div class="page-num">2</div>' in html
    assert "The owl says &quot;hi&quot;." in html
    assert 'src="https://images.test/0.png"' in html


def test_docx_export_contains_captions_and_image_references() -> None:
    document = Document(io.BytesIO(render_docx(_project())))
    texts = [paragraph.text for paragraph in document.paragraphs]

    assert texts[0] == "Fox & <Friends>"
    assert "The fox wakes." in texts
    assert "Image: https://images.test/1.png" in texts
    assert "2" in texts


def test_docx_export_embeds_inline_images() -> None:
    project = _project()
    project.pages[0].image_url = MOCK_IMAGE_DATA_URL

    document = Document(io.BytesIO(render_docx(project)))

    assert len(document.inline_shapes) == 1
