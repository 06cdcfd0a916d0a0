#!/usr/bin/env python3
"""
Setup script for CodeSage Scrape

This script handles the installation and distribution of the CodeSage Scrape package.
It provides the codesage-scrape command line entry point and installs all dependencies.

Usage:
    pip install -e .                    # Install in development mode
    pip install -e .[test]              # Development mode with the test tools
    pip install .                       # Install normally
    python setup.py sdist bdist_wheel    # Build distribution packages
"""

import sys
from pathlib import Path
from setuptools import setup

# Ensure we're running on Python 3.8+
if sys.version_info < (3, 8):
    sys.exit("ERROR: Python 3.8 or higher is required")

# Get the directory containing this script
here = Path(__file__).parent.absolute()

# Read the README file for long description
def read_readme():
    """Read and return the contents of README.md"""
    readme_path = here / "README.md"
    if readme_path.exists():
        with open(readme_path, 'r', encoding='utf-8') as f:
            return f.read()
    return "Collect LeetCode problems, editorials, solutions and comments as training datasets."

# Read requirements from requirements.txt
def read_requirements():
    """Read and return the list of requirements from requirements.txt"""
    requirements_path = here / "requirements.txt"
    requirements = []

    if requirements_path.exists():
        with open(requirements_path, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                # Skip empty lines and comments
                if line and not line.startswith('#'):
                    requirements.append(line)

    return requirements

# Get version from main module
def get_version():
    """Extract version from the main module"""
    version_file = here / "main.py"
    if version_file.exists():
        with open(version_file, 'r', encoding='utf-8') as f:
            for line in f:
                if line.strip().startswith('__version__'):
                    return line.split('=')[1].strip().strip('"').strip("'")
    return "1.0.0"

# Package metadata
PACKAGE_NAME = "codesage-scrape"
PACKAGE_VERSION = get_version()
PACKAGE_DESCRIPTION = "Collect LeetCode problems, editorials, solutions and comments as training datasets"
PACKAGE_LONG_DESCRIPTION = read_readme()

# Package requirements
INSTALL_REQUIRES = read_requirements()

# Development dependencies
EXTRAS_REQUIRE = {
    'dev': [
        'pytest>=7.0.0',
        'pytest-cov>=4.0.0',
        'flake8>=5.0.0',
    ],
    'test': [
        'pytest>=7.0.0',
        'pytest-cov>=4.0.0',
    ]
}

# Entry points for command-line usage
ENTRY_POINTS = {
    'console_scripts': [
        'codesage-scrape=main:main',
    ],
}

# Classifiers for PyPI
CLASSIFIERS = [
    'Development Status :: 4 - Beta',
    'Intended Audience :: Developers',
    'Intended Audience :: Science/Research',
    'License :: OSI Approved :: MIT License',
    'Operating System :: OS Independent',
    'Programming Language :: Python :: 3',
    'Programming Language :: Python :: 3.8',
    'Programming Language :: Python :: 3.9',
    'Programming Language :: Python :: 3.10',
    'Programming Language :: Python :: 3.11',
    'Programming Language :: Python :: 3.12',
    'Topic :: Internet :: WWW/HTTP :: Browsers',
    'Topic :: Scientific/Engineering :: Artificial Intelligence',
    'Topic :: Text Processing :: Markup :: HTML',
    'Topic :: Utilities',
]

# Keywords for PyPI search
KEYWORDS = [
    'leetcode',
    'web-scraping',
    'dataset',
    'llm-training',
    'selenium',
    'beautifulsoup',
]

def main():
    """Main setup function"""

    setup(
        # Basic package information
        name=PACKAGE_NAME,
        version=PACKAGE_VERSION,
        description=PACKAGE_DESCRIPTION,
        long_description=PACKAGE_LONG_DESCRIPTION,
        long_description_content_type='text/markdown',

        # Package discovery
        packages=['scraper', 'utils', 'exporters'],
        py_modules=['main'],

        # Python version requirement
        python_requires='>=3.8',

        # Dependencies
        install_requires=INSTALL_REQUIRES,
        extras_require=EXTRAS_REQUIRE,

        # Entry points
        entry_points=ENTRY_POINTS,

        # PyPI metadata
        classifiers=CLASSIFIERS,
        keywords=' '.join(KEYWORDS),

        # Additional options
        zip_safe=False,
        license='MIT',
    )

if __name__ == '__main__':
    main()
