from __future__ import annotations

import logging
from typing import Any, Sequence

from pydantic import ValidationError

from ..schemas import (
    CoverLetterSections,
    Education,
    Experience,
    GenerateDocumentRequest,
    GeneratedCoverLetter,
    GeneratedCV,
    Project,
    SkillCategory,
    SkillsAnalysis,
    UserDetails,
)
from . import gemini_service
from .gemini_service import GeminiServiceError

logger = logging.getLogger("cvtailor.documents")

MAX_ANALYZED_SKILLS = 20

CV_JSON_SHAPE = """{
  "content": string,
  "sections": {
    "summary": string,
    "experience": [{"title": string, "company": string, "period": string, "description": string}],
    "education": [{"degree": string, "institution": string, "period": string}],
    "projects": [{"name": string, "description": string, "technologies": [string]}],
    "skills": [string]
  }
}"""

COVER_LETTER_JSON_SHAPE = """{
  "content": string,
  "sections": {"introduction": string, "body": [string], "conclusion": string}
}"""


def _period(start: str, end: str | None, current: bool) -> str:
    return f"{start} - {'Present' if current else (end or 'Present')}"


def format_experiences(experiences: Sequence[Experience]) -> str:
    if not experiences:
        return "No work experience provided."
    return "\n\n".join(
        f"{exp.job_title} at {exp.company}, {exp.location} "
        f"({_period(exp.start_date, exp.end_date, exp.current)})\n{exp.description}"
        for exp in experiences
    )


def format_educations(educations: Sequence[Education]) -> str:
    if not educations:
        return "No education details provided."
    blocks = []
    for edu in educations:
        block = (
            f"{edu.degree} from {edu.institution}, {edu.location} "
            f"({_period(edu.start_date, edu.end_date, edu.current)})"
        )
        if edu.description:
            block += f"\n{edu.description}"
        blocks.append(block)
    return "\n\n".join(blocks)


def format_projects(projects: Sequence[Project]) -> str:
    if not projects:
        return "No projects provided."
    blocks = []
    for project in projects:
        technologies = ", ".join(project.technologies) if project.technologies else "None"
        blocks.append(
            f"{project.name} ({project.start_date} - {project.end_date or 'Present'})\n"
            f"{project.description}\nTechnologies: {technologies}"
        )
    return "\n\n".join(blocks)


def format_skills(categories: Sequence[SkillCategory]) -> str:
    if not categories:
        return "No skills provided."
    return "\n".join(f"{category.name}: {', '.join(category.skills)}" for category in categories)


def _profile_block(request: GenerateDocumentRequest, include_links: bool) -> str:
    details = request.user_details
    lines = [
        "USER DETAILS:",
        f"Name: {details.full_name}",
        f"Title: {details.job_title or 'Professional'}",
        f"Email: {details.email}",
        f"Phone: {details.phone}",
        f"Location: {details.location}",
    ]
    if include_links:
        lines.append(f"LinkedIn: {details.linkedin or 'Not provided'}")
        lines.append(f"Website: {details.website or 'Not provided'}")
    lines.append(f"Summary/About: {details.summary or 'Not provided'}")
    lines.extend(
        [
            "",
            "WORK EXPERIENCE:",
            format_experiences(request.experiences),
            "",
            "EDUCATION:",
            format_educations(request.educations),
            "",
            "PROJECTS:",
            format_projects(request.projects),
            "",
            "SKILLS:",
            format_skills(request.skill_categories),
            "",
            "JOB DESCRIPTION:",
            request.job_description,
        ]
    )
    return "\n".join(lines)


def build_cv_prompt(request: GenerateDocumentRequest) -> str:
    language = request.language
    return "\n".join(
        [
            "You are an expert CV writer specializing in ATS optimization. Create a resume tailored to the",
            "job description below that authentically represents the candidate's qualifications.",
            "",
            f"TARGET LANGUAGE: {language.upper()}",
            f"Write the entire resume, including section headings, in {language}.",
            "",
            _profile_block(request, include_links=True),
            "",
            "INSTRUCTIONS:",
            "- Open with a 3-5 line professional summary aimed at this specific role.",
            "- Keep every provided experience, education entry and project; emphasise what the job asks for.",
            "- Start bullet points with action verbs and quantify results where the input allows.",
            "- List skills in order of relevance, including every job skill the candidate has.",
            "- No objective statements, references or personal pronouns.",
            "",
            "Return ONLY a JSON object with this shape:",
            CV_JSON_SHAPE,
        ]
    )


def build_cover_letter_prompt(request: GenerateDocumentRequest) -> str:
    language = request.language
    return "\n".join(
        [
            "You are a career coach who helps candidates write authentic, human cover letters.",
            "",
            f"TARGET LANGUAGE: {language.upper()}",
            f"Write the entire cover letter, including greeting and closing, in {language}.",
            "",
            _profile_block(request, include_links=False),
            "",
            "GUIDELINES:",
            "- 300-400 words in a warm, natural, professional voice.",
            "- Focus on the 3-4 experiences or skills that connect most directly to the job.",
            "- Short paragraphs of 2-4 sentences; no cliches.",
            "- Opening of 3-4 sentences, 2-3 body paragraphs, brief closing.",
            "",
            "Return ONLY a JSON object with this shape:",
            COVER_LETTER_JSON_SHAPE,
        ]
    )


def build_skills_prompt(job_description: str) -> str:
    return "\n".join(
        [
            "Analyze the following job description and extract the key skills and technologies required.",
            "",
            "JOB DESCRIPTION:",
            job_description,
            "",
            "Include hard skills (technologies, tools, languages, frameworks, methodologies) and important",
            "soft skills or domain knowledge, both explicit and implied by the responsibilities.",
            f"Order by relevance and include up to {MAX_ANALYZED_SKILLS} skills.",
            'Return ONLY a JSON object: {"skills": [string]}',
        ]
    )


def _validate(model: type, payload: dict[str, Any], kind: str) -> Any:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        logger.warning(
            "Generated document failed schema validation",
            extra={"event": "generation_invalid", "reason": kind},
        )
        raise GeminiServiceError(f"Generated {kind} does not match the expected schema") from exc


def _warn_on_missing(cv: GeneratedCV, request: GenerateDocumentRequest) -> None:
    sections = cv.sections
    checks = (
        ("experiences", len(request.experiences), len(sections.experience)),
        ("educations", len(request.educations), len(sections.education)),
        ("projects", len(request.projects), len(sections.projects)),
        ("skills", sum(len(category.skills) for category in request.skill_categories), len(sections.skills)),
    )
    for name, provided, returned in checks:
        if provided and returned < provided:
            logger.warning(
                "Generated CV dropped some %s (%d of %d kept)",
                name,
                returned,
                provided,
                extra={"event": "generation_incomplete", "reason": name},
            )


async def generate_cv(request: GenerateDocumentRequest) -> GeneratedCV:
    payload = await gemini_service.generate_json(build_cv_prompt(request))
    cv = _validate(GeneratedCV, payload, "CV")
    _warn_on_missing(cv, request)
    return cv


def fallback_cover_letter(user_details: UserDetails, experiences: Sequence[Experience] = ()) -> GeneratedCoverLetter:
    name = user_details.full_name or "Candidate"
    background = experiences[0].job_title if experiences else "the field"
    employer = experiences[0].company if experiences else "previous companies"
    content = (
        "Dear Hiring Manager,\n\n"
        "I am writing to express my interest in the position described in the job posting. "
        f"With my background in {background}, I believe I can make a valuable contribution to your team.\n\n"
        f"My experience at {employer} has prepared me well for this role. I have developed skills in "
        "problem-solving, communication, and teamwork that would allow me to excel in this position.\n\n"
        "I would welcome the opportunity to discuss my qualifications further. "
        "Thank you for considering my application.\n\n"
        f"Sincerely,\n{name}"
    )
    return GeneratedCoverLetter(
        content=content,
        sections=CoverLetterSections(
            introduction=(
                "Dear Hiring Manager,\n\n"
                "I am writing to express my interest in the position described in the job posting."
            ),
            body=[
                "My experience has prepared me well for this role. "
                "I have developed skills that would allow me to excel in this position."
            ],
            conclusion=(
                "I would welcome the opportunity to discuss my qualifications further. "
                f"Thank you for considering my application.\n\nSincerely,\n{name}"
            ),
        ),
    )


def _assemble_content(letter: GeneratedCoverLetter) -> str:
    sections = letter.sections
    parts = [sections.introduction, "\n\n".join(sections.body), sections.conclusion]
    return "\n\n".join(part for part in parts if part).strip()


async def generate_cover_letter(request: GenerateDocumentRequest) -> GeneratedCoverLetter:
    """Generate a cover letter; LLM failures degrade to a generic letter rather than an error."""

    try:
        payload = await gemini_service.generate_json(build_cover_letter_prompt(request))
        letter = _validate(GeneratedCoverLetter, payload, "cover letter")
    except GeminiServiceError:
        logger.exception(
            "Cover letter generation failed, using fallback",
            extra={"event": "cover_letter_fallback", "reason": "generation_failed"},
        )
        return fallback_cover_letter(request.user_details, request.experiences)

    if not letter.content:
        letter.content = _assemble_content(letter)
    if not letter.content:
        logger.warning(
            "Cover letter came back empty, using fallback",
            extra={"event": "cover_letter_fallback", "reason": "empty_content"},
        )
        return fallback_cover_letter(request.user_details, request.experiences)
    return letter


async def analyze_job_description(job_description: str) -> list[str]:
    cleaned = job_description.strip()
    if not cleaned:
        raise ValueError("Job description is required")

    payload = await gemini_service.generate_json(build_skills_prompt(cleaned), temperature=0.0)
    analysis = _validate(SkillsAnalysis, payload, "skills analysis")
    seen: set[str] = set()
    skills: list[str] = []
    for skill in analysis.skills:
        normalized = " ".join(skill.split())
        if normalized and normalized.lower() not in seen:
            seen.add(normalized.lower())
            skills.append(normalized)
    return skills[:MAX_ANALYZED_SKILLS]
