from __future__ import annotations

import json
from typing import Sequence

from ..models.records import Finding


def render_json(findings: Sequence[Finding]) -> str:
    """Serialize findings as a pretty-printed JSON array with sorted keys."""
    payload = [finding.to_dict() for finding in findings]
    return json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False)
