from __future__ import annotations
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

SeverityName = Literal["info", "warning", "error"]
FormatName = Literal["text", "json", "sarif"]


class AnalysisConfig(BaseModel):
    """Settings for one analysis run."""
    severity_min: SeverityName = Field("info", description="Diagnostics below this severity are dropped before reporting.")
    fail_on: Optional[SeverityName] = Field(None, description="Exit with status 1 at or above this severity. Defaults to severity_min.")
    format: FormatName = Field("text", description="The reporter to render with.")
    rules: List[str] = Field(default_factory=list, description="Restrict the catalog to these rule ids. Empty means all.")

    # Discovery
    exclude: List[str] = Field(default_factory=list, description="Glob patterns of paths to skip.")
    include_tests: bool = Field(False, description="Analyze *.spec.ts files too.")

    # Execution
    max_workers: int = Field(4, ge=1, description="Worker threads analyzing units in parallel.")
    timeout: Optional[float] = Field(None, gt=0, description="Cancel the run after this many seconds.")

    # Catalog
    catalog_path: Optional[str] = Field(None, description="An alternative rule catalog file.")
    rule_options: Dict[str, Dict[str, Any]] = Field(default_factory=dict, description="Per-rule option overrides.")

    class Config:
        extra = "forbid"

    @field_validator("rules", mode="before")
    @classmethod
    def split_rule_ids(cls, v):
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    @property
    def fail_threshold(self) -> str:
        return self.fail_on or self.severity_min

    @classmethod
    def default(cls) -> "AnalysisConfig":
        return cls()
