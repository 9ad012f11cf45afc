from pathlib import Path

import pytest

from ngsage.analyzers.parser_factory import classify_file, create_parser
from ngsage.facts.extractor import FactExtractor
from ngsage.rules.catalog import load_catalog
from ngsage.rules.engine import RuleEngine

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture(scope="session")
def corpus_dir():
    return FIXTURES_DIR / "corpus"


@pytest.fixture(scope="session")
def extractor():
    return FactExtractor()


@pytest.fixture(scope="session")
def catalog(extractor):
    return load_catalog(produced_kinds=extractor.produced_kinds)


@pytest.fixture
def parse_ts():
    """Builds a SourceUnit from TypeScript text."""
    def build(text, path="sample.component.ts"):
        parser = create_parser("typescript")
        return parser.build_unit(path, text, classify_file(path, text))
    return build


@pytest.fixture
def extract_facts(parse_ts, extractor):
    """Returns the facts of a snippet, optionally only those of one kind."""
    def run(text, kind=None, path="sample.component.ts"):
        facts = extractor.extract(parse_ts(text, path))
        return [f for f in facts if kind is None or f.kind == kind]
    return run


@pytest.fixture
def analyze_text(parse_ts, extractor, catalog):
    """Runs parsing, extraction and the full catalog over a snippet."""
    engine = RuleEngine(catalog)

    def run(text, path="sample.component.ts"):
        unit = parse_ts(text, path)
        return engine.evaluate(unit, extractor.extract(unit))
    return run
