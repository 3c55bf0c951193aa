"""
Setup script for linework.

Linework is the curriculum engine behind a freehand drawing course:

1. Curriculum Graph - skill trees of prerequisite-gated lessons
2. Lesson Sessions - theory, guided practice and assessment
3. Validation Rules - geometric scoring of pen strokes
4. Progress Ledger - XP, levels, streaks and recommendations

The 'linework' command browses the catalog and learner progress.
"""

from setuptools import find_packages, setup

setup(
    name="linework",
    version="0.3.0",
    description="Curriculum engine for freehand drawing lessons",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="Linework",
    packages=find_packages(include=["linework", "linework.*"]),
    package_data={"linework.curriculum": ["catalog/*.yaml"]},
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Storage
        "sqlalchemy>=2.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "pyyaml>=6.0",
        # HTTP
        "httpx>=0.25.0",
        # Logging
        "loguru>=0.7.0",
        # Stroke geometry & prerequisite graph
        "numpy>=1.24.0",
        "networkx>=3.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "linework=linework.cli:run",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="drawing curriculum lessons education skill-tree",
)
