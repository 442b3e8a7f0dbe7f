from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from ..analysis.analyzer import StructuralAnalyzer
from .records import StructuralUnit

logger = logging.getLogger(__name__)

SWIFT_SUFFIX = ".swift"


@dataclass
class AnalysisContext:
    """Everything a rule may look at during one run.

    ``files`` maps source paths to their full text and is never modified.
    Structural units are derived lazily per file and cached for the run.
    Setting ``cancel_event`` stops file iteration between files.
    """

    root_path: str
    files: Mapping[str, str]
    analyzer: StructuralAnalyzer = field(default_factory=StructuralAnalyzer)
    cancel_event: Optional[threading.Event] = None
    _cache: Dict[Tuple[str, bool], List[StructuralUnit]] = field(
        default_factory=dict, init=False, repr=False
    )
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def source_paths(self) -> List[str]:
        return sorted(path for path in self.files if path.endswith(SWIFT_SUFFIX))

    def iter_sources(self) -> Iterator[Tuple[str, str]]:
        """Yield ``(path, text)`` in path order until the run is cancelled."""
        for path in self.source_paths():
            if self.cancelled:
                logger.info("Cancellation requested; stopping before %s", path)
                return
            yield path, self.files[path]

    def units_for(self, path: str, merge_extensions: bool = False) -> List[StructuralUnit]:
        key = (path, merge_extensions)
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None:
            return cached
        units = self.analyzer.analyze(path, self.files[path], merge_extensions)
        with self._lock:
            return self._cache.setdefault(key, units)

    def units_by_file(self, merge_extensions: bool = False) -> Dict[str, List[StructuralUnit]]:
        return {
            path: self.units_for(path, merge_extensions)
            for path, _ in self.iter_sources()
        }

    def prepare(self, merge_flags: Tuple[bool, ...] = (False,), workers: int = 1) -> None:
        """Analyze every file up front, optionally on a thread pool."""
        jobs = [(path, merge) for path in self.source_paths() for merge in merge_flags]
        if workers <= 1:
            for path, merge in jobs:
                if self.cancelled:
                    return
                self.units_for(path, merge)
            return
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(self._prepare_one, path, merge) for path, merge in jobs
            ]
            for future in futures:
                future.result()

    def _prepare_one(self, path: str, merge: bool) -> None:
        if not self.cancelled:
            self.units_for(path, merge)
