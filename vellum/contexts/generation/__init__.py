"""
Generation context: AI-assisted content for resumes and cover letters.

Profile and job description data structures, prompt templates, the LLM-backed
ContentCollaborator, and clarifying question normalization.
"""

from vellum.contexts.generation.collaborator import AtsAnalysis, ContentCollaborator
from vellum.contexts.generation.profile_data_structure import (
    Education,
    Experience,
    JobDescription,
    Profile,
)
from vellum.contexts.generation.questions import Question, normalize_questions

__all__ = [
    "AtsAnalysis",
    "ContentCollaborator",
    "Education",
    "Experience",
    "JobDescription",
    "Profile",
    "Question",
    "normalize_questions",
]
