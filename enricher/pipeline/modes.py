"""
Enrichment modes — company lookup and candidate evaluation.

companies:  company name → six facts (CUI, website, revenue, profit, ...)
profiles:   LinkedIn profile → fixed technical / experience / overall rubric
candidates: LinkedIn profile + job description → 1-3 criteria from a config sheet
"""
import logging
from typing import Dict, List, Optional

from enricher.config import Settings
from enricher.errors import DocumentFetchError, StructuralValidationError
from enricher.models.records import NOT_FOUND, EvaluationCriterion, ExtractedResult, ModelRequest
from enricher.pipeline.base import ModeAdapter, RunContext
from enricher.pipeline.columns import (
    CRITERION_FIELDS, PROFILE_FIELDS, ColumnIndex, Field,
)
from enricher.pipeline.parser import COMPANY_EXTRACTORS, ResponseParser, evaluation_extractors
from enricher.pipeline.prompts import (
    COMPANY_FACTS, MAX_CRITERIA, build_company_prompt, build_evaluation_prompt,
)
from enricher.services.documents import DocumentSource

logger = logging.getLogger('pipeline.modes')


def resolve_columns(settings: Settings, store, fields, headers: Optional[Dict[str, str]] = None) -> ColumnIndex:
    """Build the run's ColumnIndex with the mode's configured strategy."""
    mode = settings.mode
    if mode.strategy == 'static':
        return ColumnIndex.from_letters(mode.columns)
    if mode.strategy == 'dynamic':
        merged = dict(mode.headers)
        merged.update(headers or {})
        return ColumnIndex.from_headers(store.get_row(1), fields, merged)
    raise StructuralValidationError(f"Unknown column strategy '{mode.strategy}' for mode '{mode.name}'")


def require_columns(columns: ColumnIndex, fields, mode: str):
    missing = [str(f) for f in fields if not columns.has(f)]
    if missing:
        raise StructuralValidationError(
            f"Eroare de structură ({mode}): Lipsesc următoarele coloane: {', '.join(missing)}"
        )


# ── Company lookup ───────────────────────────────────────────────────────────

class CompanyLookup(ModeAdapter):
    """Company name → official registry facts, searched with grounding."""
    mode = 'companies'
    description = 'Company name → CUI, website, revenue, profit, employees'
    noun = 'companii'

    def prepare(self, settings, store, workbook=None, documents=None) -> RunContext:
        fields = [Field.COMPANY_NAME, Field.STATUS] + [f for f, _, _ in COMPANY_FACTS]
        columns = resolve_columns(settings, store, fields)
        require_columns(columns, settings.mode.required_fields + settings.mode.score_fields, self.mode)

        outputs = [str(f) for f, _, _ in COMPANY_FACTS if columns.has(f)]
        return RunContext(
            settings=settings,
            columns=columns,
            input_fields=[Field.COMPANY_NAME.value],
            score_fields=list(settings.mode.score_fields),
            output_fields=outputs,
        )

    def build_request(self, record, ctx) -> ModelRequest:
        return ModelRequest(
            build_company_prompt(record.text(Field.COMPANY_NAME.value)),
            search_grounding=ctx.settings.mode.search_grounding,
        )

    def parser(self, ctx) -> ResponseParser:
        return ResponseParser(COMPANY_EXTRACTORS)

    def conclusion(self, result: ExtractedResult, ctx) -> str:
        found = [
            f'{label}: {result.get(str(field))}'
            for field, label, _ in COMPANY_FACTS
            if result.get(str(field), NOT_FOUND) != NOT_FOUND
        ]
        if not found:
            return 'Nicio informație găsită'
        return ' | '.join(found)

    def label(self, record) -> str:
        return record.text(Field.COMPANY_NAME.value) or super().label(record)


# ── Candidate evaluation ─────────────────────────────────────────────────────

PROFILE_CRITERIA = (
    EvaluationCriterion(
        'Scor tehnic',
        'Cât de bine acoperă competențele tehnice ale candidatului cerințele rolului.',
        Field.TECHNICAL_SCORE.value,
    ),
    EvaluationCriterion(
        'Scor experiență',
        'Relevanța și vechimea experienței profesionale pentru rol.',
        Field.EXPERIENCE_SCORE.value,
    ),
    EvaluationCriterion(
        'Scor general',
        'Potrivirea de ansamblu a candidatului pentru rol.',
        Field.OVERALL_SCORE.value,
    ),
)


class _Evaluation(ModeAdapter):
    """Shared prompt / parser / conclusion for the evaluation modes."""
    noun = 'candidați'

    def build_request(self, record, ctx) -> ModelRequest:
        return ModelRequest(
            build_evaluation_prompt(record, ctx.criteria, ctx.job_description),
            search_grounding=ctx.settings.mode.search_grounding,
        )

    def parser(self, ctx) -> ResponseParser:
        return ResponseParser(evaluation_extractors(ctx.criteria))

    def conclusion(self, result: ExtractedResult, ctx) -> str:
        scores = [(c.title, result.get(c.field, 0)) for c in ctx.criteria]
        parts = [f'{title}: {score}/100' for title, score in scores]
        if scores:
            average = sum(score for _, score in scores) / len(scores)
            parts.append(f'Medie: {average:.0f}')
        parts.append(f'Recomandări: {len(result.recommendations)}')
        return ' | '.join(parts)

    def label(self, record) -> str:
        return record.text(Field.LINKEDIN_NAME.value) or super().label(record)

    def _job_description(self, value: str, documents: Optional[DocumentSource]) -> str:
        documents = documents or DocumentSource()
        try:
            return documents.resolve(value)
        except DocumentFetchError as e:
            raise StructuralValidationError(f'Descrierea postului nu a putut fi citită: {e}')

    def _context(self, settings, columns, criteria, job_description) -> RunContext:
        score_fields = [c.field for c in criteria]
        outputs = score_fields + [
            f.value for f in (Field.RECOMMENDATIONS, Field.CONCLUSION) if columns.has(f)
        ]
        return RunContext(
            settings=settings,
            columns=columns,
            criteria=list(criteria),
            job_description=job_description,
            input_fields=[f.value for f in PROFILE_FIELDS if columns.has(f)],
            score_fields=score_fields,
            output_fields=outputs,
        )


class ProfileEvaluation(_Evaluation):
    """LinkedIn export with a fixed three-score rubric and static columns."""
    mode = 'profiles'
    description = 'LinkedIn profile → technical, experience and overall scores + recommendations'

    def prepare(self, settings, store, workbook=None, documents=None) -> RunContext:
        fields = list(PROFILE_FIELDS) + [
            Field.TECHNICAL_SCORE, Field.EXPERIENCE_SCORE, Field.OVERALL_SCORE,
            Field.RECOMMENDATIONS, Field.CONCLUSION, Field.STATUS,
        ]
        columns = resolve_columns(settings, store, fields)
        criteria = list(PROFILE_CRITERIA)
        require_columns(columns, settings.mode.required_fields + [c.field for c in criteria], self.mode)
        job_description = self._job_description(settings.mode.job_description, documents)
        return self._context(settings, columns, criteria, job_description)


class CandidateEvaluation(_Evaluation):
    """Criteria and job description come from a configuration sheet; columns by header."""
    mode = 'candidates'
    description = 'LinkedIn profile + job description → 1-3 configured criteria + recommendations'

    def prepare(self, settings, store, workbook=None, documents=None) -> RunContext:
        sheet_name = settings.mode.criteria_sheet or 'Configurare'
        if workbook is None or not workbook.has_sheet(sheet_name):
            raise StructuralValidationError(
                f"Lipsește foaia de configurare '{sheet_name}' (criterii de evaluare și descrierea postului)"
            )
        criteria, job_value = read_configuration(workbook.sheet(sheet_name))

        fields = list(PROFILE_FIELDS) + [Field.RECOMMENDATIONS, Field.CONCLUSION, Field.STATUS]
        fields += [c.field for c in criteria]
        headers = {c.field: c.title for c in criteria}
        columns = resolve_columns(settings, store, fields, headers)
        require_columns(columns, settings.mode.required_fields + [c.field for c in criteria], self.mode)

        job_description = self._job_description(job_value, documents)
        return self._context(settings, columns, criteria, job_description)


# ── Configuration sheet ──────────────────────────────────────────────────────

JOB_DESCRIPTION_KEYS = ('job description', 'descriere post', 'descrierea postului')


def read_configuration(config_store):
    """
    Read criteria and the job description from the configuration sheet.

    Layout (column A label, B/C values):
        Job Description | <text or URL>
        Criteriu 1      | <title> | <scoring rubric>
        Criteriu 2      | <title> | <scoring rubric>

    Returns (criteria, job_description_value).
    Raises StructuralValidationError for 0 or more than 3 usable criteria.
    """
    criteria: List[EvaluationCriterion] = []
    job_value = ''
    for row in range(1, config_store.last_row() + 1):
        key = str(config_store.get_cell(row, 1) or '').strip()
        lowered = key.lower()
        if lowered in JOB_DESCRIPTION_KEYS:
            job_value = str(config_store.get_cell(row, 2) or '').strip()
        elif lowered.startswith('criteriu') or lowered.startswith('criterion'):
            title = str(config_store.get_cell(row, 2) or '').strip()
            fragment = str(config_store.get_cell(row, 3) or '').strip()
            if not title or not fragment:
                logger.warning("Skipping incomplete criterion on config row %d", row)
                continue
            if len(criteria) >= MAX_CRITERIA:
                raise StructuralValidationError(
                    f'Sunt permise cel mult {MAX_CRITERIA} criterii de evaluare'
                )
            criteria.append(EvaluationCriterion(title, fragment, CRITERION_FIELDS[len(criteria)].value))

    if not criteria:
        raise StructuralValidationError('Nu a fost configurat niciun criteriu de evaluare')
    return criteria, job_value


# ── Adapter registry ─────────────────────────────────────────────────────────

ADAPTERS: Dict[str, type] = {
    'companies': CompanyLookup,
    'profiles': ProfileEvaluation,
    'candidates': CandidateEvaluation,
}
