"""
Setup script for studyhabits.

studyhabits is a terminal study-habit tracker built around three
time-driven engines:

1. Flashcards - SM-2 spaced repetition over decks of cards
2. Pomodoro - deadline-anchored work/break timer that survives restarts
3. RSVP Reader - paced word-by-word reading at an adjustable speed

The 'studyhabits' command is the entry point.
"""

from setuptools import find_packages, setup

setup(
    name="studyhabits",
    version="0.1.0",
    description="Terminal study-habit tracker: flashcards, pomodoro timer and RSVP reader",
    packages=find_packages(include=["studyhabits", "studyhabits.*"]),
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "studyhabits=studyhabits.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
    ],
    keywords="study spaced-repetition pomodoro rsvp speed-reading cli",
)
