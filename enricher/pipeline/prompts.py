"""
Prompt templates — company lookup and candidate evaluation.

The labels below are shared with pipeline.parser: the strict output format
requested here is exactly what the extractors match, so change them together.
"""
from typing import Optional, Sequence, Tuple

from enricher.models.records import EvaluationCriterion, Record
from enricher.pipeline.columns import Field


# ── Shared labels ─────────────────────────────────────────────────────────────

# (field, reply label, placeholder) in the order the model is asked to answer
COMPANY_FACTS: Tuple[Tuple[Field, str, str], ...] = (
    (Field.OFFICIAL_NAME, 'Numele oficial', '[nume]'),
    (Field.CUI, 'Codul fiscal', '[CUI]'),
    (Field.REVENUE, 'Cifra de afaceri', '[suma]'),
    (Field.PROFIT, 'Profit', '[suma]'),
    (Field.EMPLOYEES, 'Nr de angajati', '[număr]'),
    (Field.WEBSITE, 'Site-ul', '[URL]'),
)

RECOMMENDATIONS_LABEL = 'Recomandări'
SCORE_PLACEHOLDER = '[scor]'

PROFILE_LABELS: Tuple[Tuple[Field, str], ...] = (
    (Field.LINKEDIN_NAME, 'Nume'),
    (Field.LINKEDIN_HEADLINE, 'Titlu profil'),
    (Field.LINKEDIN_JOB_TITLE, 'Post actual'),
    (Field.LINKEDIN_COMPANY, 'Companie'),
    (Field.LINKEDIN_LOCATION, 'Locație'),
    (Field.LINKEDIN_SUMMARY, 'Rezumat'),
    (Field.LINKEDIN_SKILLS, 'Competențe'),
    (Field.LINKEDIN_EXPERIENCE, 'Experiență'),
    (Field.LINKEDIN_EDUCATION, 'Educație'),
)

MAX_CRITERIA = 3


# ── Company lookup ────────────────────────────────────────────────────────────

def build_company_prompt(company_name: str) -> str:
    """Ask for six company facts in fixed labeled lines."""
    answer_format = '\n'.join(f'{label}: {placeholder}' for _, label, placeholder in COMPANY_FACTS)
    return f"""Te rog caută și furnizează următoarele informații despre compania "{company_name}", in paranteza gasesti domeniul de activitate.
Te rog sa alegi cea mai probabila companie romaneasca si sa extragi detaliile pentru ea.
Important: Forteaza ca raspunsul sa fie doar ce este pus in model intre [].

1. Numele oficial complet al companiei
2. Codul Unic de Înregistrare (CUI)
3. Cifra de afaceri pentru anul 2023 (sau cel mai recent an disponibil)
4. Profitul pentru anul 2023 (sau cel mai recent an disponibil)
5. Numărul de angajați
6. Website-ul oficial

Caută informațiile pe listafirme.ro și alte surse oficiale românești.
Răspunde strict cu informațiile găsite, în formatul:
{answer_format}"""


# ── Candidate evaluation ──────────────────────────────────────────────────────

def format_profile(record: Record) -> str:
    """Render the non-blank profile fields as 'Label: value' lines."""
    lines = []
    for field, label in PROFILE_LABELS:
        value = record.text(field.value)
        if value:
            lines.append(f'{label}: {value}')
    return '\n'.join(lines)


def format_criterion(criterion: EvaluationCriterion) -> str:
    return f'{criterion.title} (0-100): {criterion.prompt_fragment}'


def expected_output_format(criteria: Sequence[EvaluationCriterion]) -> str:
    """The strict reply layout: one score line per criterion, then the recommendations block."""
    lines = [f'{c.title}: {SCORE_PLACEHOLDER}' for c in criteria]
    lines.append(f'{RECOMMENDATIONS_LABEL}:')
    lines.append('- [recomandare 1]')
    lines.append('- [recomandare 2]')
    lines.append('- [recomandare 3 (opțional)]')
    return '\n'.join(lines)


def build_evaluation_prompt(
    record: Record,
    criteria: Sequence[EvaluationCriterion],
    job_description: Optional[str] = None,
) -> str:
    """
    Evaluation prompt: profile block + job description + up to three criteria.

    Raises:
        ValueError: no criteria, or more than MAX_CRITERIA.
    """
    criteria = list(criteria)
    if not criteria:
        raise ValueError('At least one evaluation criterion is required')
    if len(criteria) > MAX_CRITERIA:
        raise ValueError(f'At most {MAX_CRITERIA} evaluation criteria are supported, got {len(criteria)}')

    rubric = '\n'.join(f'{idx}. {format_criterion(c)}' for idx, c in enumerate(criteria, 1))
    job_text = (job_description or '').strip() or 'Nespecificată. Evaluează pe baza profilului.'

    return f"""Evaluează candidatul de mai jos pentru postul descris. Acordă fiecărui criteriu un scor întreg între 0 și 100.

PROFIL CANDIDAT:
{format_profile(record)}

DESCRIEREA POSTULUI:
{job_text}

CRITERII DE EVALUARE:
{rubric}

Răspunde STRICT în formatul de mai jos, fără niciun alt text. Recomandările sunt 2-3 rânduri, fiecare începând cu "-":
{expected_output_format(criteria)}"""
