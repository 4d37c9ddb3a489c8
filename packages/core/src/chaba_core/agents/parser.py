"""Turn an agent's free-text stdout into an AnalysisResult.

Agents are LLM CLIs with no output contract, so parsing degrades in three
stages: a JSON document if one can be found, then keyword heuristics line by
line, then a single informational finding. The raw output is always kept.
"""

from __future__ import annotations

import json
import logging
import re

from chaba_store.models import AnalysisResult, Category, Finding, Severity

logger = logging.getLogger(__name__)

_SEVERITY_SYNONYMS = {
    "critical": Severity.CRITICAL,
    "重大": Severity.CRITICAL,
    "high": Severity.HIGH,
    "高": Severity.HIGH,
    "medium": Severity.MEDIUM,
    "中": Severity.MEDIUM,
    "low": Severity.LOW,
    "低": Severity.LOW,
    "info": Severity.INFO,
}

_CATEGORY_SYNONYMS = {
    "security": Category.SECURITY,
    "セキュリティ": Category.SECURITY,
    "performance": Category.PERFORMANCE,
    "パフォーマンス": Category.PERFORMANCE,
    "bug": Category.CODE_QUALITY,
    "バグ": Category.CODE_QUALITY,
    "code-quality": Category.CODE_QUALITY,
    "codequality": Category.CODE_QUALITY,
    "code_quality": Category.CODE_QUALITY,
    "best-practice": Category.BEST_PRACTICE,
    "bestpractice": Category.BEST_PRACTICE,
    "best_practice": Category.BEST_PRACTICE,
    "ベストプラクティス": Category.BEST_PRACTICE,
    "architecture": Category.ARCHITECTURE,
    "アーキテクチャ": Category.ARCHITECTURE,
    "testing": Category.TESTING,
    "テスト": Category.TESTING,
    "documentation": Category.DOCUMENTATION,
    "ドキュメント": Category.DOCUMENTATION,
}

# Ordered: the first group whose keywords appear in a line classifies it.
_KEYWORD_GROUPS = [
    (("critical", "重大", "致命的"), Severity.CRITICAL, Category.SECURITY),
    (("security", "セキュリティ", "vulnerability", "脆弱性"), Severity.HIGH, Category.SECURITY),
    (("error", "エラー", "bug", "バグ"), Severity.HIGH, Category.CODE_QUALITY),
    (("warning", "警告"), Severity.MEDIUM, Category.BEST_PRACTICE),
    (("performance", "パフォーマンス", "slow", "遅い"), Severity.MEDIUM, Category.PERFORMANCE),
    (("suggestion", "提案", "improvement", "改善"), Severity.LOW, Category.BEST_PRACTICE),
]

_JSON_START_RE = re.compile(r"[\[{]")


def parse_severity(value) -> Severity:
    return _SEVERITY_SYNONYMS.get(str(value).strip().lower(), Severity.INFO)


def parse_category(value) -> Category:
    return _CATEGORY_SYNONYMS.get(str(value).strip().lower(), Category.OTHER)


def parse_output(agent_name: str, output: str) -> AnalysisResult:
    result = AnalysisResult(agent_name=agent_name, raw_output=output)

    if _parse_json(output, result):
        return result

    result.findings = _parse_keywords(output)
    if not result.findings:
        logger.debug("%s: no structured or keyword findings, keeping raw output", agent_name)
        result.findings = [
            Finding(
                severity=Severity.INFO,
                category=Category.OTHER,
                title="Review completed",
                description="Agent completed review - see raw output for details",
            )
        ]
    return result


def _parse_json(output: str, result: AnalysisResult) -> bool:
    """Fill ``result`` from the first JSON document in ``output`` that holds findings."""
    decoder = json.JSONDecoder()
    for match in _JSON_START_RE.finditer(output):
        try:
            document, _ = decoder.raw_decode(output, match.start())
        except json.JSONDecodeError:
            continue
        except RecursionError:
            logger.debug("JSON in %d bytes of output is nested too deeply to decode", len(output))
            return False

        if isinstance(document, dict) and isinstance(document.get("findings"), list):
            items = document["findings"]
        elif isinstance(document, list):
            items = document
        else:
            continue

        findings = [f for f in (_finding_from_json(item) for item in items) if f is not None]
        if not findings:
            continue

        result.findings = findings
        if isinstance(document, dict):
            score = document.get("score")
            if isinstance(score, (int, float)) and not isinstance(score, bool):
                result.set_score(score)
        return True
    return False


def _finding_from_json(item) -> Finding | None:
    if not isinstance(item, dict):
        return None
    title = item.get("title")
    if not isinstance(title, str) or not title.strip():
        return None

    line = item.get("line")
    return Finding(
        severity=parse_severity(item.get("severity", "info")),
        category=parse_category(item.get("category", "other")),
        title=title.strip(),
        description=str(item.get("description") or ""),
        file=item.get("file") if isinstance(item.get("file"), str) else None,
        line=line if isinstance(line, int) and not isinstance(line, bool) and line >= 0 else None,
        suggestion=item.get("suggestion") if isinstance(item.get("suggestion"), str) else None,
    )


def _parse_keywords(output: str) -> list[Finding]:
    lines = output.splitlines()
    findings = []
    for i, line in enumerate(lines):
        lowered = line.lower()
        for keywords, severity, category in _KEYWORD_GROUPS:
            if any(keyword in lowered for keyword in keywords):
                description = lines[i + 1].strip() if i + 1 < len(lines) else ""
                findings.append(Finding(severity=severity, category=category, title=line.strip(), description=description))
                break
    return findings
