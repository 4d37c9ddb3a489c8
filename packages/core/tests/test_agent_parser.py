"""Tests for the three-stage agent output parser."""

from chaba_core.agents.parser import parse_category, parse_output, parse_severity
from chaba_store.models import Category, Severity


class TestStructured:
    def test_findings_object_with_score(self):
        output = (
            '{"findings":[{"severity":"high","category":"security","title":"X","description":"Y"}],"score":4.2}'
        )
        result = parse_output("claude", output)
        assert len(result.findings) == 1
        finding = result.findings[0]
        assert (finding.severity, finding.category) == (Severity.HIGH, Category.SECURITY)
        assert (finding.title, finding.description) == ("X", "Y")
        assert result.score == 4.2
        assert result.agent_name == "claude"

    def test_json_embedded_in_prose(self):
        output = (
            "Here is my review:\n```json\n"
            '{"findings": [{"severity": "medium", "category": "testing", "title": "No tests", '
            '"file": "src/a.py", "line": 3, "suggestion": "Add one"}]}\n```\nThanks!'
        )
        finding = parse_output("codex", output).findings[0]
        assert finding.category == Category.TESTING
        assert (finding.file, finding.line, finding.suggestion) == ("src/a.py", 3, "Add one")

    def test_top_level_list(self):
        output = '[{"severity": "low", "category": "documentation", "title": "Typo"}]'
        result = parse_output("gemini", output)
        assert result.findings[0].severity == Severity.LOW
        assert result.score is None

    def test_score_is_clamped(self):
        output = '{"findings":[{"severity":"info","title":"ok"}],"score":9}'
        assert parse_output("claude", output).score == 5.0

    def test_nan_score_is_dropped(self):
        output = '{"findings":[{"severity":"high","title":"X"}],"score":NaN}'
        result = parse_output("claude", output)
        assert result.score is None
        assert result.findings[0].title == "X"

    def test_localized_synonyms(self):
        output = '{"findings":[{"severity":"重大","category":"セキュリティ","title":"鍵の漏洩"}]}'
        finding = parse_output("claude", output).findings[0]
        assert (finding.severity, finding.category) == (Severity.CRITICAL, Category.SECURITY)

    def test_unknown_values_default(self):
        output = '{"findings":[{"severity":"blocker","category":"style","title":"Z"}]}'
        finding = parse_output("claude", output).findings[0]
        assert (finding.severity, finding.category) == (Severity.INFO, Category.OTHER)

    def test_empty_findings_falls_through(self):
        result = parse_output("claude", '{"findings": [], "score": 5}')
        assert len(result.findings) == 1
        assert result.findings[0].title == "Review completed"
        assert result.score is None

    def test_braces_before_json_are_skipped(self):
        output = 'Use {placeholders} carefully.\n{"findings":[{"severity":"high","title":"Real"}]}'
        assert parse_output("claude", output).findings[0].title == "Real"

    def test_deeply_nested_output_falls_back_to_keywords(self):
        output = "[" * 50000 + "]" * 50000 + "\nWarning: unused import\n"
        result = parse_output("codex", output)
        assert result.findings[0].severity == Severity.MEDIUM
        assert result.findings[0].title == "Warning: unused import"
        assert result.raw_output == output


class TestHeuristic:
    def test_critical_line(self):
        result = parse_output("claude", "Some intro\nCRITICAL: leaked key\nrotate it now")
        critical = [f for f in result.findings if f.severity == Severity.CRITICAL]
        assert critical
        assert critical[0].category == Category.SECURITY
        assert critical[0].title == "CRITICAL: leaked key"
        assert critical[0].description == "rotate it now"

    def test_keyword_groups_in_order(self):
        output = "\n".join(
            [
                "Security: token in logs",
                "Bug: off by one",
                "Warning: deprecated API",
                "Performance is slow here",
                "Suggestion: rename",
            ]
        )
        result = parse_output("codex", output)
        assert [(f.severity, f.category) for f in result.findings] == [
            (Severity.HIGH, Category.SECURITY),
            (Severity.HIGH, Category.CODE_QUALITY),
            (Severity.MEDIUM, Category.BEST_PRACTICE),
            (Severity.MEDIUM, Category.PERFORMANCE),
            (Severity.LOW, Category.BEST_PRACTICE),
        ]

    def test_japanese_keywords(self):
        result = parse_output("gemini", "脆弱性があります")
        assert result.findings[0].severity == Severity.HIGH


class TestFallback:
    def test_empty_output(self):
        result = parse_output("claude", "")
        assert len(result.findings) == 1
        assert (result.findings[0].severity, result.findings[0].category) == (Severity.INFO, Category.OTHER)
        assert result.raw_output == ""

    def test_irrelevant_text_is_preserved(self):
        text = "Looks good to me.\nNothing to add."
        result = parse_output("claude", text)
        assert len(result.findings) == 1
        assert result.raw_output == text


def test_vocabulary_lookups():
    assert parse_severity(" HIGH ") == Severity.HIGH
    assert parse_category("Best_Practice") == Category.BEST_PRACTICE
    assert parse_category("バグ") == Category.CODE_QUALITY
