from setuptools import setup, find_packages

setup(
    name="ngsage",
    version="0.1.0",
    description="Rule engine that detects Angular anti-patterns in TypeScript sources.",
    packages=find_packages(include=["ngsage", "ngsage.*"]),
    package_data={"ngsage.rules": ["catalog.yaml"]},
    python_requires=">=3.9",
    install_requires=[
        "click>=8.0",
        "pyyaml",
        "pydantic>=2.0",
        "tree-sitter>=0.22",
        "tree-sitter-typescript>=0.21",
        "tree-sitter-html>=0.20",
        "structlog",
        "rich",
        "gitignore-parser",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "ngsage = ngsage.cli.main:main",
        ],
    },
)
