"""
Prompt templates for the content collaborator.

Every prompt pairs a system prompt (role and output contract) with a user
prompt built from JSON dumps of the profile and job description.
"""

import json
from typing import Any, Dict, Optional

from vellum.contexts.generation.profile_data_structure import JobDescription, Profile

# =============================================================================
# SYSTEM PROMPTS
# =============================================================================

LATEX_SYSTEM_PROMPT = """\
You are an expert LaTeX resume writer.
Return ONLY the complete LaTeX document, from \\documentclass to \\end{document}.
No explanations, no markdown."""

QUESTIONS_SYSTEM_PROMPT = """\
You are an expert resume writer and career coach.
Return ONLY a valid JSON array. No explanations, no markdown."""

ATS_SYSTEM_PROMPT = """\
You are an Applicant Tracking System (ATS) analyst.
Return ONLY a JSON object with the requested fields."""

EDIT_SYSTEM_PROMPT = """\
You are an expert resume editor.
Return ONLY the edited section text, keeping its format and structure."""

# Packages the bundled templates and a stock TeX Live install can always resolve
ALLOWED_PACKAGES = ["inputenc", "fontenc", "geometry", "hyperref", "xcolor", "titlesec", "enumitem"]

COVER_LETTER_TONES = ("professional", "formal", "enthusiastic")

# =============================================================================
# USER PROMPT TEMPLATES
# =============================================================================

_RESUME_PROMPT_TEMPLATE = """\
Generate a LaTeX resume based on the following information.

User Profile:
{profile_json}

Job Description:
{job_json}

Additional Answers:
{answers_json}

Requirements:
1. Start from the template below; keep its document class, preamble, and macros.
2. Replace placeholder content with the user's data.
3. Tailor content to the job description.
4. Include quantifiable achievements.
5. Use action verbs and industry-specific keywords.
6. Use ONLY these packages: {packages}.
7. DO NOT use fontawesome, tikz, or other complex packages.
8. Escape LaTeX special characters (& % $ # _) in user text.

Template:
{skeleton}

Return the complete LaTeX document:"""

_COVER_LETTER_PROMPT_TEMPLATE = """\
Generate a cover letter in LaTeX format based on the following information.

User Profile:
{profile_json}

Job Description:
{job_json}

Resume Summary:
{resume_summary}

Tone: {tone}

Requirements:
1. Tailor the letter to the specific job and company.
2. Use a {tone} tone.
3. Reference specific skills and experiences from the profile.
4. Show enthusiasm for the role.
5. Close with a call to action.
6. Use ONLY these packages: {packages}.
{skeleton_block}
Return the complete LaTeX cover letter:"""

_QUESTIONS_PROMPT_TEMPLATE = """\
Given the following user profile and job description, generate 5-8 relevant,
diverse questions that:
- Fill gaps in the resume
- Surface strong achievements
- Match the user's skills to the job requirements
- Use a variety of input types: "text", "textarea", "multiselect", "checkbox"
- For skills, certifications, and languages, use "multiselect" or "checkbox",
  provide options taken from the job description and common industry skills,
  and set can_add_more: true

Each question is an object with:
  question (string)
  input_type ("text" | "textarea" | "multiselect" | "checkbox")
  required (true/false)
  category ("summary" | "experience" | "skills" | "achievements" | "certifications" | "languages" | "education")
  options (string[], multiselect/checkbox only)
  priority ("low" | "medium" | "high")
  can_add_more (boolean, skills/certifications/languages only)

User Profile:
{profile_json}

Job Description:
{job_json}

Return ONLY the JSON array of questions."""

_ATS_PROMPT_TEMPLATE = """\
Analyze the following resume against the job description for ATS compatibility.

Resume Text:
{resume_text}

Job Description:
{job_json}

Return a JSON object:
{{
  "score": 85,
  "keywords": ["Python", "Kubernetes"],
  "missing_keywords": ["Terraform"],
  "suggestions": ["Add more quantifiable achievements"]
}}

score is 0-100, based on keyword match and content relevance."""

_EDIT_PROMPT_TEMPLATE = """\
Edit the following resume section based on the instruction and context.

Section Text:
{section_text}

Instruction:
{instruction}

Context:
{context}"""


def _dump(data: Any) -> str:
    return json.dumps(data, indent=2, default=str)


def build_resume_prompt(
    profile: Profile,
    job: JobDescription,
    answers: Optional[Dict[str, Any]],
    skeleton: str,
) -> str:
    return _RESUME_PROMPT_TEMPLATE.format(
        profile_json=_dump(profile.to_dict()),
        job_json=_dump(job.to_dict()),
        answers_json=_dump(answers or {}),
        packages=", ".join(ALLOWED_PACKAGES),
        skeleton=skeleton,
    )


def build_cover_letter_prompt(
    profile: Profile,
    job: JobDescription,
    resume_summary: Optional[str] = None,
    tone: str = "professional",
    skeleton: Optional[str] = None,
) -> str:
    if tone not in COVER_LETTER_TONES:
        raise ValueError(f"Unknown tone: {tone}. Use one of {', '.join(COVER_LETTER_TONES)}")

    skeleton_block = f"\nTemplate:\n{skeleton}\n" if skeleton else ""
    return _COVER_LETTER_PROMPT_TEMPLATE.format(
        profile_json=_dump(profile.to_dict()),
        job_json=_dump(job.to_dict()),
        resume_summary=resume_summary or profile.summary or "(none)",
        tone=tone,
        packages=", ".join(ALLOWED_PACKAGES),
        skeleton_block=skeleton_block,
    )


def build_questions_prompt(profile: Profile, job: JobDescription) -> str:
    return _QUESTIONS_PROMPT_TEMPLATE.format(
        profile_json=_dump(profile.to_dict()),
        job_json=_dump(job.to_dict()),
    )


def build_ats_prompt(resume_text: str, job: JobDescription) -> str:
    return _ATS_PROMPT_TEMPLATE.format(resume_text=resume_text, job_json=_dump(job.to_dict()))


def build_edit_prompt(section_text: str, instruction: str, context: str = "") -> str:
    return _EDIT_PROMPT_TEMPLATE.format(
        section_text=section_text,
        instruction=instruction,
        context=context or "(none)",
    )
