from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

Severity = Literal["info", "warning", "error"]

SEVERITY_ORDER = {"info": 0, "warning": 1, "error": 2}

# reserved rule ids for diagnostics raised by the pipeline itself
ENGINE_FAULT = "engine-fault"
MALFORMED_SOURCE = "malformed-source"
IO_ERROR = "io-error"
RESERVED_RULE_IDS = frozenset({ENGINE_FAULT, MALFORMED_SOURCE, IO_ERROR})


def severity_at_least(severity: str, threshold: str) -> bool:
    return SEVERITY_ORDER[severity] >= SEVERITY_ORDER[threshold]


class DiagnosticLocation(BaseModel):
    file_path: str = Field(..., description="The path of the unit the diagnostic belongs to.")
    line: int = Field(1, description="1-based start line.")
    column: int = Field(1, description="1-based start column.")
    end_line: Optional[int] = Field(None, description="1-based end line.")
    end_column: Optional[int] = Field(None, description="1-based end column.")
    offset: int = Field(0, description="Start byte offset, used for ordering.")

    class Config:
        frozen = True


class Diagnostic(BaseModel):
    id: str = ""
    rule_id: str = Field(..., description="The identifier of the rule that matched.")
    severity: Severity = Field(..., description="The severity of the finding.")
    message: str = Field(..., description="A human-readable description of the finding.")
    location: DiagnosticLocation = Field(..., description="Where the finding is.")
    category: Optional[str] = Field(None, description="The anti-pattern category of the rule.")
    fix: Optional[str] = Field(None, description="A suggested fix, when the rule has one.")

    class Config:
        frozen = True

    @model_validator(mode="before")
    def generate_id(cls, data):
        if isinstance(data, dict) and not data.get("id"):
            rule_id = data.get("rule_id")
            location = data.get("location")
            if rule_id and location:
                if isinstance(location, dict):
                    data["id"] = f"{rule_id}:{location.get('file_path', 'unknown-file')}:{location.get('line', 0)}:{location.get('column', 0)}"
                elif isinstance(location, DiagnosticLocation):
                    data["id"] = f"{rule_id}:{location.file_path}:{location.line}:{location.column}"
        return data
