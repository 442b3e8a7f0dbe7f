import pytest

from swiftlens.models.records import Finding, Severity
from swiftlens.pipeline import (
    cap,
    exclude_by_pattern,
    glob_match,
    make_relative_path,
    meets_threshold,
    prioritize,
    render_path_style,
    summarize,
)


def _finding(severity, path="/project/A.swift", line=1, title="t", rule_id="god-type", **kwargs):
    return Finding(
        rule_id=rule_id,
        title=title,
        message="m",
        severity=severity,
        file_path=path,
        line=line,
        **kwargs,
    )


def test_prioritize_orders_by_severity_first():
    findings = [_finding(Severity.LOW), _finding(Severity.HIGH), _finding(Severity.MEDIUM)]
    assert [f.severity for f in prioritize(findings)] == [
        Severity.HIGH,
        Severity.MEDIUM,
        Severity.LOW,
    ]


def test_prioritize_breaks_ties_by_path_line_and_title():
    findings = [
        _finding(Severity.MEDIUM, path="/project/B.swift", line=1),
        _finding(Severity.MEDIUM, path="/project/A.swift", line=None),
        _finding(Severity.MEDIUM, path="/project/A.swift", line=9, title="b"),
        _finding(Severity.MEDIUM, path="/project/A.swift", line=9, title="a"),
    ]
    ordered = prioritize(findings)
    assert [(f.file_path[-7:], f.line, f.title) for f in ordered] == [
        ("A.swift", 9, "a"),
        ("A.swift", 9, "b"),
        ("A.swift", None, "t"),
        ("B.swift", 1, "t"),
    ]


def test_prioritize_is_idempotent():
    findings = [_finding(Severity.LOW, line=3), _finding(Severity.HIGH, line=2)]
    once = prioritize(findings)
    assert prioritize(once) == once


def test_cap_reports_omitted_count():
    findings = [_finding(Severity.LOW, line=i) for i in range(5)]
    kept, omitted = cap(findings, 2)
    assert kept == findings[:2]
    assert omitted == 3

    assert cap(findings, None) == (findings, 0)
    assert cap(findings, 0) == ([], 5)


def test_make_relative_path():
    assert make_relative_path("/project/App/A.swift", "/project") == "App/A.swift"
    assert make_relative_path("/project/App/A.swift", "/project/") == "App/A.swift"
    assert make_relative_path("/other/A.swift", "/project") == "/other/A.swift"
    assert make_relative_path("/projectX/A.swift", "/project") == "/projectX/A.swift"


def test_render_path_style():
    findings = [_finding(Severity.LOW, path="/project/App/../App/A.swift")]
    relative = render_path_style(findings, "relative", "/project")
    assert relative[0].file_path == "App/A.swift"
    absolute = render_path_style(findings, "absolute", "/project")
    assert absolute[0].file_path == "/project/App/A.swift"
    assert findings[0].file_path == "/project/App/../App/A.swift"


@pytest.mark.parametrize(
    "path, pattern, expected",
    [
        ("Tests/A.swift", "**/Tests/**", True),
        ("App/Tests/A.swift", "**/Tests/**", True),
        ("App/UnitTests/A.swift", "**/Tests/**", False),
        ("App/UnitTests/A.swift", "**/*Tests*/**", True),
        ("App/A.swift", "App/*.swift", True),
        ("App/Sub/A.swift", "App/*.swift", False),
        ("App/Sub/A.swift", "App/**", True),
        ("App/A1.swift", "App/A?.swift", True),
        ("App/A.swift", "./App/A.swift", True),
        ("App/A+B.swift", "App/A+B.swift", True),
    ],
)
def test_glob_match(path, pattern, expected):
    assert glob_match(path, pattern) is expected


def test_exclude_by_pattern_uses_root_relative_paths():
    findings = [
        _finding(Severity.HIGH, path="/project/App/Tests/A.swift"),
        _finding(Severity.HIGH, path="/project/App/Main.swift"),
    ]
    kept = exclude_by_pattern(findings, ["**/Tests/**"], "/project")
    assert [f.file_path for f in kept] == ["/project/App/Main.swift"]
    assert exclude_by_pattern(findings, [], "/project") == findings


def test_summarize_counts_and_ranks():
    findings = [
        _finding(Severity.HIGH, path="/p/A.swift", type_name="Big", evidence={"lineCount": "900"}),
        _finding(Severity.MEDIUM, path="/p/A.swift", rule_id="di-smell"),
        _finding(Severity.MEDIUM, path="/p/B.swift", type_name="Mid", evidence={"lineCount": "400"}),
    ]
    summary = summarize(findings)
    assert summary.total == 3
    assert summary.severity_counts[Severity.MEDIUM] == 2
    assert summary.severity_counts[Severity.INFO] == 0
    assert summary.rules_triggered == ["di-smell", "god-type"]
    assert summary.top_files == [("/p/A.swift", 2), ("/p/B.swift", 1)]
    assert summary.top_types == [("Big", 900), ("Mid", 400)]


def test_meets_threshold():
    findings = [_finding(Severity.MEDIUM)]
    assert meets_threshold(findings, Severity.MEDIUM)
    assert meets_threshold(findings, Severity.LOW)
    assert not meets_threshold(findings, Severity.HIGH)
    assert not meets_threshold(findings, None)
    assert not meets_threshold([], Severity.INFO)


def test_severity_ordering_and_parse():
    assert Severity.INFO < Severity.LOW < Severity.MEDIUM < Severity.HIGH
    assert Severity.parse(" High ") is Severity.HIGH
    with pytest.raises(ValueError):
        Severity.parse("critical")


def test_finding_to_dict_omits_missing_fields():
    finding = Finding(
        rule_id="god-type",
        title="Massive type suspected",
        message="m",
        severity=Severity.HIGH,
        file_path="A.swift",
        evidence={"b": "2", "a": "1"},
    )
    payload = finding.to_dict()
    assert payload["ruleID"] == "god-type"
    assert payload["severity"] == "high"
    assert list(payload["evidence"]) == ["a", "b"]
    assert "line" not in payload
    assert "typeName" not in payload


def test_finding_evidence_is_read_only():
    source = {"lineCount": "320"}
    finding = _finding(Severity.HIGH, evidence=source)
    with pytest.raises(TypeError):
        finding.evidence["lineCount"] = "1"
    source["lineCount"] = "1"
    assert finding.evidence["lineCount"] == "320"
