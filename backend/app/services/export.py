from __future__ import annotations

from datetime import date
from io import BytesIO
import re
from typing import Optional

from docx import Document

from ..schemas import ContactDetails, GeneratedCoverLetter, GeneratedCV


def _heading(title: str) -> str:
    return f"{title}\n{'=' * len(title)}\n"


def _contact_header(details: ContactDetails, include_title: bool, include_profiles: bool) -> str:
    text = f"{details.full_name}\n"
    if include_title and details.job_title:
        text += f"{details.job_title}\n"

    contact = [value for value in (details.email, details.phone, details.location) if value]
    if contact:
        text += " | ".join(contact) + "\n"

    if include_profiles:
        profiles = [
            label
            for label, value in (("LinkedIn", details.linkedin), ("GitHub", details.github), ("Website", details.website))
            if value
        ]
        if profiles:
            text += " | ".join(profiles) + "\n"
    return text


def cv_to_text(cv: GeneratedCV, details: Optional[ContactDetails] = None) -> str:
    text = ""
    if details is not None:
        text += _contact_header(details, include_title=True, include_profiles=True) + "\n"

    sections = cv.sections
    header_length = len(text)
    if sections.summary:
        text += _heading("SUMMARY") + f"{sections.summary}\n\n"

    if sections.experience:
        text += _heading("EXPERIENCE")
        for job in sections.experience:
            text += f"{job.title} | {job.company}\n"
            if job.period:
                text += f"{job.period}\n"
            if job.description:
                text += f"{job.description}\n"
            text += "\n"

    if sections.education:
        text += _heading("EDUCATION")
        for edu in sections.education:
            text += f"{edu.degree} | {edu.institution}\n"
            if edu.period:
                text += f"{edu.period}\n"
            text += "\n"

    if sections.skills:
        text += _heading("SKILLS") + ", ".join(sections.skills) + "\n\n"

    if sections.projects:
        text += _heading("PROJECTS")
        for project in sections.projects:
            text += f"{project.name}\n"
            if project.description:
                text += f"{project.description}\n"
            if project.technologies:
                text += f"Technologies: {', '.join(project.technologies)}\n"
            text += "\n"

    if len(text) == header_length and cv.content:
        text += f"{cv.content}\n"
    return text


def cover_letter_to_text(
    letter: GeneratedCoverLetter,
    details: Optional[ContactDetails] = None,
    today: Optional[date] = None,
) -> str:
    text = ""
    if details is not None:
        text += _contact_header(details, include_title=False, include_profiles=False)
        text += f"\n{(today or date.today()).isoformat()}\n\n"

    if letter.content:
        text += letter.content

    text += "\n\nSincerely,\n\n"
    text += details.full_name if details is not None else ""
    return text


def _docx_bytes(document) -> bytes:
    buffer = BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def _docx_contact_header(document, details: ContactDetails, include_title: bool, include_profiles: bool) -> None:
    lines = _contact_header(details, include_title, include_profiles).splitlines()
    document.add_heading(lines[0], level=0)
    for line in lines[1:]:
        document.add_paragraph(line)


def cv_to_docx(cv: GeneratedCV, details: Optional[ContactDetails] = None) -> bytes:
    """Render the CV as a Word document with one heading per section."""
    document = Document()
    if details is not None:
        _docx_contact_header(document, details, include_title=True, include_profiles=True)

    sections = cv.sections
    has_sections = False
    if sections.summary:
        document.add_heading("Summary", level=1)
        document.add_paragraph(sections.summary)
        has_sections = True

    if sections.experience:
        document.add_heading("Experience", level=1)
        for job in sections.experience:
            document.add_heading(f"{job.title} | {job.company}", level=2)
            if job.period:
                document.add_paragraph(job.period)
            if job.description:
                document.add_paragraph(job.description)
        has_sections = True

    if sections.education:
        document.add_heading("Education", level=1)
        for edu in sections.education:
            document.add_heading(f"{edu.degree} | {edu.institution}", level=2)
            if edu.period:
                document.add_paragraph(edu.period)
        has_sections = True

    if sections.skills:
        document.add_heading("Skills", level=1)
        document.add_paragraph(", ".join(sections.skills))
        has_sections = True

    if sections.projects:
        document.add_heading("Projects", level=1)
        for project in sections.projects:
            document.add_heading(project.name, level=2)
            if project.description:
                document.add_paragraph(project.description)
            if project.technologies:
                document.add_paragraph(f"Technologies: {', '.join(project.technologies)}")
        has_sections = True

    if not has_sections and cv.content:
        for block in cv.content.split("\n\n"):
            document.add_paragraph(block)
    return _docx_bytes(document)


def cover_letter_to_docx(
    letter: GeneratedCoverLetter,
    details: Optional[ContactDetails] = None,
    today: Optional[date] = None,
) -> bytes:
    document = Document()
    if details is not None:
        _docx_contact_header(document, details, include_title=False, include_profiles=False)
        document.add_paragraph((today or date.today()).isoformat())

    for block in letter.content.split("\n\n"):
        if block.strip():
            document.add_paragraph(block.strip())

    document.add_paragraph("Sincerely,")
    if details is not None:
        document.add_paragraph(details.full_name)
    return _docx_bytes(document)


def export_filename(kind: str, language: str, extension: str = "txt") -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", language.lower()).strip("-") or "english"
    return f"{kind}-{slug}.{extension}"
