from .base import BaseReporter
from .json_reporter import JsonReporter
from .sarif import SarifReporter
from .text import TextReporter

REPORTERS = {
    "text": TextReporter,
    "json": JsonReporter,
    "sarif": SarifReporter,
}


def create_reporter(format_name: str, **kwargs) -> BaseReporter:
    try:
        reporter_class = REPORTERS[format_name]
    except KeyError:
        raise ValueError(f"Unsupported report format: {format_name}")
    return reporter_class(**kwargs)


__all__ = ["BaseReporter", "JsonReporter", "SarifReporter", "TextReporter", "REPORTERS", "create_reporter"]
