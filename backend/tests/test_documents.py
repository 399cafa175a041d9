import asyncio
import logging

import pytest

from app.schemas import GenerateDocumentRequest
from app.services import documents
from app.services.gemini_service import GeminiServiceError, GeminiServiceTimeoutError


def _request(**overrides) -> GenerateDocumentRequest:
    payload = {
        "jobDescription": "Senior data engineer to own Spark pipelines, Airflow scheduling and data quality. " * 2,
        "userDetails": {
            "fullName": "Grace Hopper",
            "jobTitle": "Data Engineer",
            "email": "grace@example.com",
            "phone": "555-0100",
            "location": "Arlington, VA",
            "summary": "Data engineer who has spent years making compilers and pipelines reliable.",
        },
        "experiences": [
            {
                "jobTitle": "Data Engineer",
                "company": "Navy Labs",
                "location": "Arlington",
                "startDate": "2018",
                "endDate": "2023",
                "description": "Built batch pipelines processing billions of events per day.",
            }
        ],
        "projects": [
            {
                "name": "COBOL Revival",
                "description": "Ported legacy jobs to Python.",
                "startDate": "2021",
                "technologies": ["Python", "Airflow"],
            }
        ],
        "skillCategories": [{"name": "Data", "skills": ["Spark", "Airflow", "SQL"]}],
        "language": "german",
    }
    payload.update(overrides)
    return GenerateDocumentRequest.model_validate(payload)


def test_profile_formatting_uses_placeholders_for_empty_sections():
    request = _request(experiences=[], projects=[], skillCategories=[])
    prompt = documents.build_cv_prompt(request)

    assert "No work experience provided." in prompt
    assert "No education details provided." in prompt
    assert "No projects provided." in prompt
    assert "No skills provided." in prompt
    assert "TARGET LANGUAGE: GERMAN" in prompt
    assert "LinkedIn: Not provided" in prompt


def test_profile_formatting_renders_entries():
    request = _request()

    assert documents.format_experiences(request.experiences) == (
        "Data Engineer at Navy Labs, Arlington (2018 - 2023)\n"
        "Built batch pipelines processing billions of events per day."
    )
    assert documents.format_projects(request.projects) == (
        "COBOL Revival (2021 - Present)\nPorted legacy jobs to Python.\nTechnologies: Python, Airflow"
    )
    assert documents.format_skills(request.skill_categories) == "Data: Spark, Airflow, SQL"


def test_cover_letter_prompt_omits_profile_links():
    prompt = documents.build_cover_letter_prompt(_request())
    assert "LinkedIn:" not in prompt
    assert "Grace Hopper" in prompt


def test_generate_cv_validates_model_output(monkeypatch, caplog):
    async def fake_generate_json(prompt, temperature=None):
        assert "JOB DESCRIPTION:" in prompt
        return {
            "content": "Grace Hopper CV",
            "sections": {
                "summary": "Pipeline specialist",
                "experience": [
                    {"title": "Data Engineer", "company": "Navy Labs", "period": "2018 - 2023", "description": "x"}
                ],
                "education": [],
                "projects": [],
                "skills": ["Spark"],
            },
        }

    monkeypatch.setattr("app.services.gemini_service.generate_json", fake_generate_json)
    with caplog.at_level(logging.WARNING, logger="cvtailor.documents"):
        cv = asyncio.run(documents.generate_cv(_request()))

    assert cv.sections.summary == "Pipeline specialist"
    assert cv.sections.experience[0].company == "Navy Labs"
    dropped = {record.reason for record in caplog.records if getattr(record, "event", None) == "generation_incomplete"}
    assert dropped == {"projects", "skills"}


def test_generate_cv_rejects_malformed_output(monkeypatch):
    async def fake_generate_json(prompt, temperature=None):
        return {"sections": {"experience": [{"title": "missing company"}]}}

    monkeypatch.setattr("app.services.gemini_service.generate_json", fake_generate_json)
    with pytest.raises(GeminiServiceError):
        asyncio.run(documents.generate_cv(_request()))


def test_cover_letter_content_rebuilt_from_sections(monkeypatch):
    async def fake_generate_json(prompt, temperature=None):
        return {
            "content": "",
            "sections": {"introduction": "Hallo,", "body": ["Absatz eins.", "Absatz zwei."], "conclusion": "Gruesse"},
        }

    monkeypatch.setattr("app.services.gemini_service.generate_json", fake_generate_json)
    letter = asyncio.run(documents.generate_cover_letter(_request()))

    assert letter.content == "Hallo,\n\nAbsatz eins.\n\nAbsatz zwei.\n\nGruesse"


def test_cover_letter_falls_back_when_generation_fails(monkeypatch):
    async def fake_generate_json(prompt, temperature=None):
        raise GeminiServiceTimeoutError("timeout")

    monkeypatch.setattr("app.services.gemini_service.generate_json", fake_generate_json)
    letter = asyncio.run(documents.generate_cover_letter(_request()))

    assert letter.content.startswith("Dear Hiring Manager,")
    assert "background in Data Engineer" in letter.content
    assert "experience at Navy Labs" in letter.content
    assert letter.content.endswith("Sincerely,\nGrace Hopper")


def test_cover_letter_falls_back_when_empty(monkeypatch):
    async def fake_generate_json(prompt, temperature=None):
        return {"content": "", "sections": {}}

    monkeypatch.setattr("app.services.gemini_service.generate_json", fake_generate_json)
    letter = asyncio.run(documents.generate_cover_letter(_request(experiences=[])))

    assert "background in the field" in letter.content


def test_analyze_job_description_dedupes_and_caps(monkeypatch):
    captured = {}

    async def fake_generate_json(prompt, temperature=None):
        captured["temperature"] = temperature
        skills = ["Python", "python", "  SQL  "] + [f"Skill {i}" for i in range(30)]
        return {"skills": skills}

    monkeypatch.setattr("app.services.gemini_service.generate_json", fake_generate_json)
    skills = asyncio.run(documents.analyze_job_description("Python and SQL developer"))

    assert skills[:2] == ["Python", "SQL"]
    assert len(skills) == documents.MAX_ANALYZED_SKILLS
    assert captured["temperature"] == 0.0


def test_analyze_job_description_requires_text():
    with pytest.raises(ValueError):
        asyncio.run(documents.analyze_job_description("   "))
