from __future__ import annotations

from typing import Annotated, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl
from pydantic.alias_generators import to_camel

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
OptionalUrl = Annotated[str, Field(max_length=500, pattern=r"^$|^https?://\S+$")]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


class UserDetails(CamelModel):
    full_name: str = Field(min_length=2, max_length=120)
    job_title: str = Field(min_length=2, max_length=120)
    email: str = Field(max_length=254, pattern=EMAIL_PATTERN)
    phone: str = Field(min_length=5, max_length=40)
    location: str = Field(min_length=2, max_length=120)
    website: OptionalUrl = ""
    linkedin: OptionalUrl = ""
    github: OptionalUrl = ""
    summary: str = Field(min_length=50, max_length=4000)


class Experience(CamelModel):
    id: Optional[str] = None
    job_title: str = Field(min_length=2, max_length=120)
    company: str = Field(min_length=2, max_length=120)
    location: str = Field(min_length=2, max_length=120)
    start_date: str = Field(min_length=1, max_length=40)
    end_date: Optional[str] = Field(default=None, max_length=40)
    current: bool = False
    description: str = Field(min_length=20, max_length=6000)


class Education(CamelModel):
    id: Optional[str] = None
    degree: str = Field(min_length=2, max_length=160)
    institution: str = Field(min_length=2, max_length=160)
    location: str = Field(min_length=2, max_length=120)
    start_date: str = Field(min_length=1, max_length=40)
    end_date: Optional[str] = Field(default=None, max_length=40)
    current: bool = False
    description: Optional[str] = Field(default=None, max_length=4000)


class SkillCategory(CamelModel):
    id: Optional[str] = None
    name: str = Field(min_length=2, max_length=80)
    skills: list[str] = Field(default_factory=list, max_length=100)


class Project(CamelModel):
    id: Optional[str] = None
    name: str = Field(min_length=2, max_length=160)
    description: str = Field(min_length=10, max_length=4000)
    technologies: list[str] = Field(default_factory=list, max_length=50)
    url: Optional[str] = Field(default=None, max_length=500)
    start_date: str = Field(min_length=1, max_length=40)
    end_date: Optional[str] = Field(default=None, max_length=40)


class GenerateDocumentRequest(CamelModel):
    job_description: str = Field(min_length=100, max_length=50_000)
    user_details: UserDetails
    experiences: list[Experience] = Field(default_factory=list, max_length=30)
    educations: list[Education] = Field(default_factory=list, max_length=20)
    skill_categories: list[SkillCategory] = Field(default_factory=list, max_length=30)
    projects: list[Project] = Field(default_factory=list, max_length=30)
    language: str = Field(default="english", min_length=2, max_length=40)


class AnalyzeJobRequest(CamelModel):
    job_description: str = Field(min_length=1, max_length=50_000)


class SkillsAnalysis(CamelModel):
    skills: list[str] = Field(default_factory=list)


class CVExperienceItem(CamelModel):
    title: str
    company: str
    period: str = ""
    description: str = ""


class CVEducationItem(CamelModel):
    degree: str
    institution: str
    period: str = ""


class CVProjectItem(CamelModel):
    name: str
    description: str = ""
    technologies: list[str] = Field(default_factory=list)


class CVSections(CamelModel):
    summary: str = ""
    experience: list[CVExperienceItem] = Field(default_factory=list)
    education: list[CVEducationItem] = Field(default_factory=list)
    projects: list[CVProjectItem] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)


class GeneratedCV(CamelModel):
    content: str = ""
    sections: CVSections = Field(default_factory=CVSections)


class CoverLetterSections(CamelModel):
    introduction: str = ""
    body: list[str] = Field(default_factory=list)
    conclusion: str = ""


class GeneratedCoverLetter(CamelModel):
    content: str = ""
    sections: CoverLetterSections = Field(default_factory=CoverLetterSections)


class ExtractJobRequest(CamelModel):
    url: HttpUrl


class ExtractJobResponse(CamelModel):
    job_description: str
    url: str


class ResumeParseResponse(CamelModel):
    text: str
    num_pages: int
    info: dict[str, str] = Field(default_factory=dict)


class ContactDetails(CamelModel):
    full_name: str = Field(min_length=1, max_length=120)
    job_title: str = ""
    email: str = ""
    phone: str = ""
    location: str = ""
    website: str = ""
    linkedin: str = ""
    github: str = ""


ExportFormat = Literal["docx", "txt"]


class DownloadCVRequest(CamelModel):
    user_details: Optional[ContactDetails] = None
    cv: GeneratedCV
    language: str = Field(default="english", min_length=2, max_length=40)
    format: ExportFormat = "docx"


class DownloadCoverLetterRequest(CamelModel):
    user_details: Optional[ContactDetails] = None
    cover_letter: GeneratedCoverLetter
    language: str = Field(default="english", min_length=2, max_length=40)
    format: ExportFormat = "docx"
