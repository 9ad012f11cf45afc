DEFAULT_EXCLUDES = [
    "node_modules",
    "dist",
    "coverage",
    ".git",
    ".angular",
    "*.d.ts",
]

DEFAULT_CONFIG = {
    "severity_min": "info",
    "fail_on": None,
    "format": "text",
    "rules": [],
    "exclude": list(DEFAULT_EXCLUDES),
    "include_tests": False,
    "max_workers": 4,
    "timeout": None,
    "catalog_path": None,
    "rule_options": {},
}

ENV_PREFIX = "NGSAGE_"
