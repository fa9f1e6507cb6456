# setup.py
"""
Python package configuration for flit-experiments

This file tells Python how to build and install the experiments engine.

Key concepts covered:
- Package versioning (bucketing must stay reproducible between releases)
- Dependency management (libraries needed)
- Extras for tests and development tooling
- Console script for the flit-experiments CLI
"""

from setuptools import setup, find_packages
import os

def read_readme():
    current_dir = os.path.abspath(os.path.dirname(__file__))
    readme_path = os.path.join(current_dir, "README.md")
    if os.path.exists(readme_path):
        with open(readme_path, "r", encoding="utf-8") as f:
            return f.read()
    return "Flit Experiments - bucketing and targeting engine"

TEST_REQUIRES = [
    "pytest>=7.0.0",
    "numpy>=1.24",        # Fixed width numeric inputs for targeting tests
    "scipy>=1.10",        # Binomial tolerance for the bucketing distribution tests
]

setup(
    # pip install git+https://github.com/whitehackr/flit-experiments.git
    name="flit-experiments",

    # Version management - CRITICAL for experiment reproducibility
    # v1.0.0 = experiment config package
    # v2.0.0 = bucketing, targeting and live manifest reloading
    version="2.0.0",

    # Package metadata - shows up in pip show, PyPI, etc.
    author="Kevin Waithaka",
    author_email="kevwaithakam@gmail.com",
    description="Experiment bucketing and targeting engine for Flit's A/B testing platform",
    long_description=read_readme(),
    long_description_content_type="text/markdown",

    # Package discovery - finds flit_experiments/, leaves the tests out
    packages=find_packages(exclude=["tests", "tests.*"]),

    # Python version requirements
    python_requires=">=3.9",

    # Dependencies
    install_requires=[
        "pydantic>=2.0",            # Manifest models and validation
        "pydantic-settings>=2.0",   # FLIT_EXPERIMENTS_* environment settings
        "pyyaml>=6.0",              # YAML manifests
    ],

    # Install with: pip install -e ".[test]" or pip install -e ".[dev]"
    extras_require={
        "test": TEST_REQUIRES,
        "dev": TEST_REQUIRES + [
            "black>=22.0.0",      # Code formatting
            "flake8>=4.0.0",      # Linting
            "mypy>=0.950",        # Type checking
        ],
    },

    # Package classification
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],

    # Entry points
    entry_points={
        'console_scripts': [
            'flit-experiments=flit_experiments.cli:main',
        ],
    },

    # Project URLs - where people can find more info
    project_urls={
        "Bug Reports": "https://github.com/whitehackr/flit-experiments/issues",
        "Source": "https://github.com/whitehackr/flit-experiments",
        "Documentation": "https://github.com/whitehackr/flit-experiments/blob/main/README.md",
    },
)
