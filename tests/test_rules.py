import threading

from swiftlens.analysis.analyzer import StructuralAnalyzer
from swiftlens.models.context import AnalysisContext
from swiftlens.models.records import FunctionMetric, Severity, StructuralUnit
from swiftlens.rules.async_lifecycle import AsyncLifecycleRule
from swiftlens.rules.base import Rule
from swiftlens.rules.di_smell import DependencyInjectionSmellRule
from swiftlens.rules.god_type import (
    GodTypeRule,
    average_function_lines,
    grouped_function_prefixes,
    top_function_names,
)
from swiftlens.rules.support import extract_relevant_type_names, site_summary

from conftest import ROOT, CancelAfterRead, build_extension, build_type, load_fixture


def _client_with_singletons(count: int) -> str:
    lines = ["struct Client {", "    func run() {"]
    lines.extend("        Foo.shared.doWork()" for _ in range(count))
    lines.extend(["    }", "}"])
    return "\n".join(lines) + "\n"


def _view_model_with_tasks(count: int, extra: str = "") -> str:
    lines = ["final class FeedViewModel {", "    func start() {"]
    lines.extend("        Task { await refresh() }" for _ in range(count))
    lines.append("    }")
    if extra:
        lines.append(extra)
    lines.append("}")
    return "\n".join(lines) + "\n"


def test_rules_follow_rule_protocol():
    for rule in (GodTypeRule(), DependencyInjectionSmellRule(), AsyncLifecycleRule()):
        assert isinstance(rule, Rule)


def test_god_type_flags_type_over_line_threshold(make_context):
    context = make_context({"HugeViewController.swift": build_type(total_lines=305)})
    findings = GodTypeRule(line_threshold=300).check(context)

    assert len(findings) == 1
    finding = findings[0]
    assert finding.rule_id == "god-type"
    assert finding.title == "Massive type suspected"
    assert finding.severity is Severity.MEDIUM
    assert finding.line == 300
    assert finding.type_name == "HugeViewController"
    assert finding.file_path == f"{ROOT}/HugeViewController.swift"
    assert finding.evidence["lineCount"] == "305"
    assert finding.evidence["funcCount"] == "5"
    assert finding.evidence["includeExtensions"] == "false"
    assert finding.evidence["countingMethod"] == "tree-sitter"
    assert finding.evidence["countingConfidence"] == "high"
    assert finding.snippet is not None
    assert "Counting method: tree-sitter, confidence: high." in finding.message


def test_god_type_is_monotonic_in_thresholds(make_context):
    context = make_context({"Huge.swift": build_type(total_lines=305)})
    assert GodTypeRule(line_threshold=305).check(context)
    assert not GodTypeRule(line_threshold=306).check(context)
    assert GodTypeRule(line_threshold=100).check(context)


def test_god_type_function_threshold_points_at_nth_function(make_context):
    context = make_context({"Busy.swift": build_type(total_lines=100, function_count=25)})
    findings = GodTypeRule(line_threshold=1000, function_threshold=20).check(context)

    assert len(findings) == 1
    assert findings[0].severity is Severity.MEDIUM
    # functions start on line 2 and take three lines each
    assert findings[0].line == 2 + 3 * 19


def test_god_type_high_severity(make_context):
    context = make_context({"Busy.swift": build_type(total_lines=200, function_count=45)})
    findings = GodTypeRule().check(context)
    assert findings[0].severity is Severity.HIGH

    long_context = make_context({"Long.swift": build_type(total_lines=650)})
    assert GodTypeRule().check(long_context)[0].severity is Severity.HIGH


def test_god_type_merges_extensions_across_files(make_context):
    base = build_type(name="Store", total_lines=8, function_count=0)
    extension = "extension Store {\n" + "".join(
        f"    func load{i}() {{}}\n" for i in range(4)
    ) + "}\n"
    context = make_context({"Store.swift": base, "Store+Loading.swift": extension})

    assert not GodTypeRule(line_threshold=12).check(context)
    findings = GodTypeRule(line_threshold=12, merge_extensions=True).check(context)
    assert len(findings) == 1
    finding = findings[0]
    assert finding.file_path == f"{ROOT}/Store.swift"
    assert finding.evidence["lineCount"] == "14"
    assert finding.evidence["extensionCount"] == "1"
    assert finding.evidence["includeExtensions"] == "true"


STORE = "final class Store {\n    func start() {}\n}\n"


def test_god_type_location_stays_in_declaring_file(make_context):
    by_functions = make_context(
        {"A.swift": STORE, "B.swift": build_extension("Store", 20, leading_lines=41)}
    )
    finding = GodTypeRule(merge_extensions=True).check(by_functions)[0]
    assert finding.file_path == f"{ROOT}/A.swift"
    assert finding.evidence["funcCount"] == "21"
    assert finding.line == 1

    by_lines = make_context({"A.swift": STORE, "B.swift": build_extension("Store", 300)})
    finding = GodTypeRule(merge_extensions=True).check(by_lines)[0]
    assert finding.file_path == f"{ROOT}/A.swift"
    assert finding.evidence["lineCount"] == "305"
    assert finding.line == 1


def test_god_type_points_at_same_file_extension_function(make_context):
    context = make_context({"Store.swift": STORE + build_extension("Store", 20)})
    finding = GodTypeRule(merge_extensions=True).check(context)[0]
    # class on lines 1-3, extension functions from line 5
    assert finding.line == 5 + 18


class _OversizedAnalyzer:
    def analyze(self, file_path, source, merge_extensions=False):
        return [
            StructuralUnit(
                name="Ghost", kind="class", start_line=1, line_count=400, file_path=file_path
            )
        ]


def test_god_type_location_past_end_of_file_uses_midpoint():
    path = f"{ROOT}/Ghost.swift"
    context = AnalysisContext(
        root_path=ROOT,
        files={path: "".join(f"let v{i} = {i}\n" for i in range(9))},
        analyzer=_OversizedAnalyzer(),
    )
    finding = GodTypeRule().check(context)[0]
    assert finding.line == 5


def test_merged_god_type_skips_run_stopped_between_files(make_context):
    files = {
        "A.swift": build_type(name="Store", total_lines=70, function_count=20),
        "B.swift": build_extension("Store", 30),
    }
    complete = GodTypeRule(merge_extensions=True).check(make_context(files))
    assert complete[0].evidence["funcCount"] == "50"
    assert complete[0].severity is Severity.HIGH

    event = threading.Event()
    absolute = {f"{ROOT}/{name}": text for name, text in files.items()}
    context = AnalysisContext(
        root_path=ROOT,
        files=CancelAfterRead(absolute, f"{ROOT}/A.swift", event),
        analyzer=StructuralAnalyzer(),
        cancel_event=event,
    )
    assert GodTypeRule(merge_extensions=True).check(context) == []


def test_per_file_rules_keep_files_completed_before_cancel():
    event = threading.Event()
    files = {
        f"{ROOT}/A.swift": _client_with_singletons(6),
        f"{ROOT}/B.swift": _client_with_singletons(6),
    }
    context = AnalysisContext(
        root_path=ROOT,
        files=CancelAfterRead(files, f"{ROOT}/A.swift", event),
        analyzer=StructuralAnalyzer(),
        cancel_event=event,
    )
    findings = DependencyInjectionSmellRule().check(context)
    assert [finding.file_path for finding in findings] == [f"{ROOT}/A.swift"]


def test_god_type_reports_low_confidence_for_fallback(make_context):
    source = build_type(name="LegacyViewModel", total_lines=310).replace(
        "func step0() {", "func step0( {", 1
    )
    context = make_context({"Legacy.swift": source})
    finding = GodTypeRule().check(context)[0]
    assert finding.evidence["countingMethod"] == "regex-fallback"
    assert finding.evidence["countingConfidence"] == "low"


def test_function_metric_helpers():
    functions = [
        FunctionMetric("setupViews", 1, 10),
        FunctionMetric("bindModel", 12, 13),
        FunctionMetric("setupLayout", 15, 20),
    ]
    assert top_function_names(functions, limit=2) == "setupViews(10L), setupLayout(6L)"
    assert average_function_lines(functions) == "6.0"
    assert average_function_lines([]) == "0.0"
    assert grouped_function_prefixes(functions) == [("setup", 2), ("bind", 1)]


def test_di_smell_respects_singleton_allowlist(make_context):
    context = make_context({"Client.swift": _client_with_singletons(6)})

    allowed = DependencyInjectionSmellRule(singleton_allowlist=frozenset({"Foo.shared"}))
    assert allowed.check(context) == []

    findings = DependencyInjectionSmellRule().check(context)
    assert len(findings) == 1
    finding = findings[0]
    assert finding.rule_id == "di-smell"
    assert finding.severity is Severity.MEDIUM
    assert finding.line == 3
    assert finding.type_name == "Client"
    assert finding.evidence["singletonUsageCount"] == "6"
    assert finding.evidence["rawSingletonUsageCount"] == "6"
    assert finding.evidence["singletonAllowlist"] == "none"


def test_di_smell_ignores_excluded_value_types(make_context):
    lines = ["struct Layout {", "    func frames() {"]
    lines.extend("        _ = CGPoint(x: 0, y: 0)" for _ in range(25))
    lines.extend(["    }", "}"])
    context = make_context({"Layout.swift": "\n".join(lines) + "\n"})
    assert DependencyInjectionSmellRule().check(context) == []


def test_di_smell_counts_direct_instantiations(make_context):
    lines = ["final class CheckoutViewController {", "    func build() {"]
    lines.extend("        _ = PaymentService()" for _ in range(20))
    lines.extend(["    }", "}"])
    context = make_context({"Checkout.swift": "\n".join(lines) + "\n"})

    findings = DependencyInjectionSmellRule().check(context)
    assert len(findings) == 1
    evidence = findings[0].evidence
    assert evidence["directInstantiationCount"] == "20"
    assert evidence["typeNames"] == "CheckoutViewController"
    assert findings[0].line == 3


def test_di_smell_high_severity_floor(make_context):
    context = make_context({"Client.swift": _client_with_singletons(12)})
    assert DependencyInjectionSmellRule().check(context)[0].severity is Severity.HIGH


def test_async_lifecycle_flags_uncancelled_tasks(make_context):
    context = make_context({"Feed.swift": _view_model_with_tasks(6)})
    findings = AsyncLifecycleRule().check(context)

    assert len(findings) == 1
    finding = findings[0]
    assert finding.rule_id == "async-lifecycle"
    assert finding.severity is Severity.HIGH
    assert finding.line == 3
    assert finding.type_name == "FeedViewModel"
    assert finding.evidence["taskCount"] == "6"
    assert finding.evidence["asyncTotal"] == "6"
    assert finding.evidence["cancelOrDeinitHints"] == "0"
    assert finding.evidence["taskSites"].startswith("L3: Task { await refresh() }")


def test_async_lifecycle_medium_below_high_floor(make_context):
    context = make_context({"Feed.swift": _view_model_with_tasks(3)})
    assert AsyncLifecycleRule().check(context)[0].severity is Severity.MEDIUM


def test_async_lifecycle_teardown_hooks_suppress_finding(make_context):
    with_deinit = make_context({"Feed.swift": _view_model_with_tasks(6, "    deinit {}")})
    assert AsyncLifecycleRule().check(with_deinit) == []

    with_invalidate = make_context(
        {"Feed.swift": _view_model_with_tasks(6, "    func stop() { timer.invalidate() }")}
    )
    assert AsyncLifecycleRule().check(with_invalidate) == []


def test_async_lifecycle_counts_timers_and_delayed_dispatch(make_context):
    source = "\n".join(
        [
            "final class PollingViewController {",
            "    func poll() {",
            "        Timer.scheduledTimer(withTimeInterval: 1, repeats: true) { _ in }",
            "        DispatchQueue.main.asyncAfter(deadline: .now() + 1) { }",
            "        Task.detached { }",
            "    }",
            "}",
        ]
    )
    finding = AsyncLifecycleRule().check(make_context({"Polling.swift": source}))[0]
    assert finding.evidence["timerCount"] == "1"
    assert finding.evidence["dispatchAfterCount"] == "1"
    assert finding.evidence["taskCount"] == "1"
    assert finding.line == 3


def test_rules_skip_non_swift_files(make_context):
    context = make_context({"notes.md": _client_with_singletons(20)})
    assert DependencyInjectionSmellRule().check(context) == []


def test_extract_relevant_type_names_prefers_ui_types():
    text = load_fixture("ProfileViewController.swift") + "\nstruct Helper {}\n"
    assert extract_relevant_type_names(text) == ["ProfileViewController"]
    assert extract_relevant_type_names("struct A {}\nactor B {}\n") == ["A", "B"]


def test_site_summary_without_sites():
    assert site_summary([]) == "none"
