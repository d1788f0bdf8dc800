"""Tests for enricher.pipeline.prompts — company and evaluation prompt templates."""
import pytest

from enricher.models.records import EvaluationCriterion, Record
from enricher.pipeline.prompts import (
    build_company_prompt, build_evaluation_prompt,
    expected_output_format, format_criterion, format_profile,
)


def _criteria(n):
    return [EvaluationCriterion(f'Criteriu {i}', f'Descriere {i}', f'criterion{i}') for i in range(1, n + 1)]


class TestCompanyPrompt:

    def test_embeds_company_name(self):
        prompt = build_company_prompt('ACME SRL (construcții)')
        assert '"ACME SRL (construcții)"' in prompt

    def test_requests_every_labeled_line(self):
        prompt = build_company_prompt('ACME')
        for line in ('Numele oficial: [nume]', 'Codul fiscal: [CUI]', 'Cifra de afaceri: [suma]',
                     'Profit: [suma]', 'Nr de angajati: [număr]', 'Site-ul: [URL]'):
            assert line in prompt

    def test_answer_format_is_last(self):
        assert build_company_prompt('ACME').rstrip().endswith('Site-ul: [URL]')


class TestEvaluationPrompt:

    def test_profile_block_skips_blank_fields(self):
        record = Record(row=2, values={'linkedinName': 'Ana Pop', 'linkedinJobTitle': 'QA', 'linkedinSummary': ' '})
        text = format_profile(record)
        assert 'Nume: Ana Pop' in text
        assert 'Post actual: QA' in text
        assert 'Rezumat' not in text

    def test_criteria_rendered_with_range(self):
        c = EvaluationCriterion('Scor tehnic', 'Competențe tehnice')
        assert format_criterion(c) == 'Scor tehnic (0-100): Competențe tehnice'

    def test_expected_format_lists_scores_then_recommendations(self):
        fmt = expected_output_format(_criteria(2)).splitlines()
        assert fmt[0] == 'Criteriu 1: [scor]'
        assert fmt[1] == 'Criteriu 2: [scor]'
        assert fmt[2] == 'Recomandări:'
        assert fmt[3].startswith('- ')

    def test_includes_job_description(self):
        record = Record(row=2, values={'linkedinName': 'Ana'})
        prompt = build_evaluation_prompt(record, _criteria(1), 'Tester manual, 3 ani experiență')
        assert 'Tester manual, 3 ani experiență' in prompt

    def test_blank_job_description_uses_fallback(self):
        prompt = build_evaluation_prompt(Record(row=2), _criteria(1), '  ')
        assert 'Nespecificată' in prompt

    @pytest.mark.parametrize('count', [1, 2, 3])
    def test_accepts_one_to_three_criteria(self, count):
        prompt = build_evaluation_prompt(Record(row=2), _criteria(count))
        for title in [c.title for c in _criteria(count)]:
            assert f'{title}: [scor]' in prompt

    @pytest.mark.parametrize('count', [0, 4])
    def test_rejects_other_criteria_counts(self, count):
        with pytest.raises(ValueError):
            build_evaluation_prompt(Record(row=2), _criteria(count))
