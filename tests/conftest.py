"""Shared test helpers for swiftlens tests."""
import threading
from pathlib import Path
from typing import Callable, Dict

import pytest

from swiftlens.analysis.analyzer import StructuralAnalyzer
from swiftlens.models.context import AnalysisContext

FIXTURES = Path(__file__).parent / "fixtures" / "swift"
ROOT = "/project"


def load_fixture(name: str) -> str:
    return (FIXTURES / name).read_text()


def build_type(
    name: str = "HugeViewController",
    total_lines: int = 305,
    function_count: int = 5,
    function_prefix: str = "step",
) -> str:
    """Build a class spanning exactly ``total_lines`` lines from line 1."""
    lines = [f"final class {name} {{"]
    for idx in range(function_count):
        lines.extend(
            [
                f"    func {function_prefix}{idx}() {{",
                "        run()",
                "    }",
            ]
        )
    filler = 0
    while len(lines) < total_lines - 1:
        lines.append(f"    let value{filler} = {filler}")
        filler += 1
    lines.append("}")
    return "\n".join(lines) + "\n"


def build_extension(name: str, function_count: int, leading_lines: int = 0) -> str:
    """Build ``extension name`` preceded by ``leading_lines`` top-level lines."""
    lines = [f"let g{idx} = {idx}" for idx in range(leading_lines)]
    lines.append(f"extension {name} {{")
    lines.extend(f"    func load{idx}() {{}}" for idx in range(function_count))
    lines.append("}")
    return "\n".join(lines) + "\n"


@pytest.fixture
def make_context() -> Callable[..., AnalysisContext]:
    def _make(files: Dict[str, str], strategy: str = "auto") -> AnalysisContext:
        absolute = {f"{ROOT}/{path}": text for path, text in files.items()}
        return AnalysisContext(
            root_path=ROOT,
            files=absolute,
            analyzer=StructuralAnalyzer(strategy),
        )

    return _make


class CancelAfterRead(dict):
    """File map that sets ``event`` once ``trigger`` has been read."""

    def __init__(self, files: Dict[str, str], trigger: str, event: threading.Event) -> None:
        super().__init__(files)
        self.trigger = trigger
        self.event = event

    def __getitem__(self, key: str) -> str:
        value = super().__getitem__(key)
        if key == self.trigger:
            self.event.set()
        return value
