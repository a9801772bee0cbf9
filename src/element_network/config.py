from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Tuple

from .analysis import CANDIDATE_FORMS, TRANSFORMS, ZERO_POLICIES
from .occurrence import AgeRange

MAX_AGE_DEFAULT = 4.5
MIN_AGE_DEFAULT = 0.0
CUTOFF_AGE_DEFAULT = 4.5


@dataclass
class StudyConfig:
    max_age: float = MAX_AGE_DEFAULT
    min_age: float = MIN_AGE_DEFAULT
    cutoff_age: float = CUTOFF_AGE_DEFAULT
    exclude_elements: List[str] = field(default_factory=list)
    zero_policy: str = "exclude"
    candidate_forms: List[Tuple[str, str]] = field(default_factory=lambda: list(CANDIDATE_FORMS))
    max_workers: int = 1

    def __post_init__(self):
        self.candidate_forms = [tuple(form) for form in self.candidate_forms]
        for form in self.candidate_forms:
            if len(form) != 2 or any(t not in TRANSFORMS for t in form):
                raise ValueError(f"candidate form must be a pair drawn from {TRANSFORMS}, got {form}")
        if self.zero_policy not in ZERO_POLICIES:
            raise ValueError(f"zero_policy must be one of {ZERO_POLICIES}, got {self.zero_policy!r}")
        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        AgeRange(max_age=float(self.max_age), min_age=float(self.min_age))

    @property
    def age_range(self) -> AgeRange:
        return AgeRange(max_age=float(self.max_age), min_age=float(self.min_age))

    def with_overrides(self, **overrides: Any) -> "StudyConfig":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def as_dict(self) -> Dict[str, Any]:
        return {
            "max_age": self.max_age,
            "min_age": self.min_age,
            "cutoff_age": self.cutoff_age,
            "exclude_elements": list(self.exclude_elements),
            "zero_policy": self.zero_policy,
            "candidate_forms": [list(f) for f in self.candidate_forms],
            "max_workers": self.max_workers,
        }


def load_study_config(path: Path | str | None) -> StudyConfig:
    """Read study parameters from JSON; a missing path yields the defaults."""
    if path is None:
        return StudyConfig()
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Study config not found: {path}")
    data = json.loads(path.read_text())
    known = {f.name for f in fields(StudyConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown study config keys in {path}: {unknown}")
    return StudyConfig(**data)
