from pathlib import Path

from ngsage.analyzers.base import BaseParser
from ngsage.analyzers.template_parser import TemplateParser
from ngsage.analyzers.typescript_parser import TypeScriptParser

PARSERS = {
    "typescript": TypeScriptParser,
    "html": TemplateParser,
}

LANGUAGE_MAP = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".html": "html",
}


def create_parser(language: str) -> BaseParser:
    parser = PARSERS.get(language)
    if not parser:
        raise ValueError(f"Unsupported language: {language}. Supported languages are: {list(PARSERS.keys())}")
    return parser()


def detect_language(file_path: str) -> str:
    """Detect the front end for a file from its extension."""
    name = Path(file_path).name.lower()
    if name.endswith(".d.ts"):
        return "unknown"
    return LANGUAGE_MAP.get(Path(file_path).suffix.lower(), "unknown")


def classify_file(file_path: str, content: str) -> str:
    """
    Classifies an Angular source file by role.

    Test and routing files are recognised by name first, then decorators and
    NgRx factories in the content decide the remaining kinds.
    """
    name = Path(file_path).name
    if ".spec.ts" in name or ".test.ts" in name:
        return "test"
    if "routing" in name or ".routes." in name or "RouterModule" in content or "Routes =" in content:
        return "routing"
    if "@Component(" in content:
        return "component"
    if "@Injectable(" in content:
        return "service"
    if "@Directive(" in content:
        return "directive"
    if "@Pipe(" in content:
        return "pipe"
    if "@NgModule(" in content:
        return "module"
    if (
        "createReducer" in content
        or "createSelector" in content
        or "StoreModule" in content
        or any(part in name for part in (".reducer.", ".selector.", ".state."))
    ):
        return "store"
    return "other"
