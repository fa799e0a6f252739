"""Export notes to PDF, PPTX and PNG files."""

import base64
import binascii
import io
import logging
import re
from dataclasses import dataclass

from fpdf import FPDF
from pptx import Presentation
from pptx.util import Inches, Pt

from studyspace.db.models import Note, NoteType
from studyspace.schemas.materials import FlashcardData, MindMapData, MindMapNode, PresentationData, QuizData

logger = logging.getLogger(__name__)

_DATA_URL = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.+)$", re.DOTALL)

_UNICODE_MAP = {
    "•": "\xb7",  # bullet
    "–": "-",
    "—": "--",
    "‘": "'",
    "’": "'",
    "ʻ": "'",  # Uzbek o' / g'
    "ʼ": "'",
    "“": '"',
    "”": '"',
    "…": "...",
}


class ExportError(ValueError):
    """Note cannot be exported in the requested format."""


@dataclass(frozen=True)
class ExportedFile:
    content: bytes
    media_type: str
    filename: str
    display_name: str


def _sanitize_latin1(text: str) -> str:
    """Replace characters the core PDF fonts cannot draw."""
    for char, replacement in _UNICODE_MAP.items():
        text = text.replace(char, replacement)
    return text.encode("latin-1", errors="replace").decode("latin-1")


def _safe_filename(title: str, extension: str) -> str:
    # ASCII only: the name ends up in a latin-1 encoded header
    stem = re.sub(r"[^\w\s-]", "", title, flags=re.ASCII).strip().replace(" ", "_").lower()
    return f"{stem or 'export'}.{extension}"


def _display_filename(title: str, extension: str) -> str:
    stem = re.sub(r"[\\/:*?\"<>|]", "", title).strip()
    return f"{stem or 'export'}.{extension}"


def decode_data_url(url: str | None) -> tuple[str, bytes] | None:
    """Return (mime type, bytes) of a base64 data URL, or None for anything else."""
    if not url:
        return None
    match = _DATA_URL.match(url.strip())
    if not match:
        return None
    try:
        return match["mime"], base64.b64decode(match["data"], validate=True)
    except (binascii.Error, ValueError):
        return None


# =============================================================================
# PDF
# =============================================================================


class _NotePDF(FPDF):
    def heading(self, text: str, size: int = 18) -> None:
        self.set_font("Helvetica", "B", size)
        self.multi_cell(0, size * 0.55, _sanitize_latin1(text), new_x="LMARGIN", new_y="NEXT")
        self.ln(2)

    def paragraph(self, text: str, *, size: int = 11, style: str = "", indent: float = 0) -> None:
        self.set_font("Helvetica", style, size)
        self.set_x(self.l_margin + indent)
        self.multi_cell(0, 6, _sanitize_latin1(text), new_x="LMARGIN", new_y="NEXT")

    def code(self, text: str) -> None:
        self.set_font("Courier", size=9)
        self.set_fill_color(240, 240, 240)
        self.multi_cell(0, 5, _sanitize_latin1(text), fill=True, new_x="LMARGIN", new_y="NEXT")


def _render_quiz(pdf: _NotePDF, quiz: QuizData) -> None:
    for number, question in enumerate(quiz.questions, start=1):
        pdf.paragraph(f"{number}. {question.question}", style="B")
        for index, option in enumerate(question.options):
            pdf.paragraph(f"{chr(ord('A') + index)}) {option}", indent=6)
        pdf.ln(3)

    pdf.add_page()
    pdf.heading("Answer key", 14)
    for number, question in enumerate(quiz.questions, start=1):
        letter = chr(ord("A") + question.correct_answer_index)
        line = f"{number}. {letter}"
        if question.explanation:
            line += f" - {question.explanation}"
        pdf.paragraph(line)


def _render_flashcards(pdf: _NotePDF, data: FlashcardData) -> None:
    for number, card in enumerate(data.cards, start=1):
        pdf.paragraph(f"{number}. {card.question}", style="B")
        pdf.paragraph(card.answer, indent=6)
        pdf.ln(3)


def _render_mind_map(pdf: _NotePDF, node: MindMapNode, depth: int = 0) -> None:
    pdf.paragraph(f"- {node.label}" if depth else node.label, style="B" if depth == 0 else "", indent=depth * 6)
    for child in node.children:
        _render_mind_map(pdf, child, depth + 1)


def _render_presentation(pdf: _NotePDF, data: PresentationData) -> None:
    for number, slide in enumerate(data.slides, start=1):
        if number > 1:
            pdf.ln(4)
        pdf.heading(f"{number}. {slide.title}", 14)
        for bullet in slide.content:
            pdf.paragraph(f"\xb7 {bullet}", indent=4)
        if slide.code:
            pdf.ln(2)
            pdf.code(slide.code)


def note_to_pdf(note: Note) -> bytes:
    """Render any note as a PDF document."""
    pdf = _NotePDF()
    pdf.set_auto_page_break(auto=True, margin=20)
    pdf.add_page()
    pdf.heading(note.title)

    if note.type == NoteType.QUIZ.value and note.quiz_data:
        _render_quiz(pdf, QuizData.model_validate(note.quiz_data))
    elif note.type == NoteType.FLASHCARD.value and note.flashcard_data:
        _render_flashcards(pdf, FlashcardData.model_validate(note.flashcard_data))
    elif note.type == NoteType.MINDMAP.value and note.mind_map_data:
        _render_mind_map(pdf, MindMapData.model_validate(note.mind_map_data).root_node)
    elif note.type == NoteType.PRESENTATION.value and note.presentation_data:
        _render_presentation(pdf, PresentationData.model_validate(note.presentation_data))
    elif note.type == NoteType.INFOGRAPHIC.value:
        image = decode_data_url(note.infographic_image_url)
        if image and image[0] in ("image/png", "image/jpeg"):
            pdf.image(io.BytesIO(image[1]), w=pdf.epw)
        elif note.content:
            pdf.paragraph(note.content)
    else:
        pdf.paragraph(note.content or "")

    return bytes(pdf.output())


# =============================================================================
# PPTX
# =============================================================================


def note_to_pptx(note: Note) -> bytes:
    """Render a presentation note as a PowerPoint deck."""
    if note.type != NoteType.PRESENTATION.value or not note.presentation_data:
        raise ExportError("Only presentations can be exported as PPTX")
    data = PresentationData.model_validate(note.presentation_data)

    deck = Presentation()
    title_slide = deck.slides.add_slide(deck.slide_layouts[0])
    title_slide.shapes.title.text = data.title
    title_slide.placeholders[1].text = note.title

    for slide_data in data.slides:
        slide = deck.slides.add_slide(deck.slide_layouts[1])
        slide.shapes.title.text = slide_data.title
        body = slide.placeholders[1].text_frame
        body.clear()
        for index, bullet in enumerate(slide_data.content):
            paragraph = body.paragraphs[0] if index == 0 else body.add_paragraph()
            paragraph.text = bullet

        if slide_data.code:
            box = slide.shapes.add_textbox(Inches(0.5), Inches(5.0), Inches(9.0), Inches(2.0))
            frame = box.text_frame
            frame.word_wrap = True
            frame.text = slide_data.code
            for paragraph in frame.paragraphs:
                for run in paragraph.runs:
                    run.font.name = "Courier New"
                    run.font.size = Pt(12)

        image = decode_data_url(slide_data.image_url)
        if image and image[0] in ("image/png", "image/jpeg"):
            slide.shapes.add_picture(io.BytesIO(image[1]), Inches(6.5), Inches(1.5), width=Inches(3.0))
        elif slide_data.image_url:
            logger.info("Skipping remote slide image %s", slide_data.image_url)

    buffer = io.BytesIO()
    deck.save(buffer)
    return buffer.getvalue()


# =============================================================================
# PNG
# =============================================================================


def infographic_to_png(note: Note) -> bytes:
    """Return the PNG bytes of an infographic note."""
    if note.type != NoteType.INFOGRAPHIC.value:
        raise ExportError("Only infographics can be exported as PNG")
    image = decode_data_url(note.infographic_image_url)
    if image is None or image[0] != "image/png":
        raise ExportError("This infographic is not stored as a PNG image")
    return image[1]


def export_note(note: Note, export_format: str) -> ExportedFile:
    """
    Export a note.

    Raises:
        ExportError: Unknown format or a format the note type does not support
    """
    export_format = export_format.lower()
    if export_format == "pdf":
        content, media_type = note_to_pdf(note), "application/pdf"
    elif export_format == "pptx":
        content = note_to_pptx(note)
        media_type = "application/vnd.openxmlformats-officedocument.presentationml.presentation"
    elif export_format == "png":
        content, media_type = infographic_to_png(note), "image/png"
    else:
        raise ExportError(f"Unsupported export format: {export_format}")
    return ExportedFile(
        content,
        media_type,
        _safe_filename(note.title, export_format),
        _display_filename(note.title, export_format),
    )
