"""
DuckDuckResearch - Setup Configuration

An MCP server combining DuckDuckGo search with web page visits and
screenshots in a headless browser.

License: MIT
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

core_deps = [
    # Protocol
    "mcp>=1.10.0,<2",
    # Validation
    "pydantic>=2.11.9",
    # Browser automation
    "playwright>=1.55.0",
    "beautifulsoup4>=4.14.2",
    "markdownify>=1.2.0",
    # Search
    "ddgs>=9.0.0",
    # CLI
    "click>=8.1.0",
]

# Development dependencies
dev_deps = [
    # Testing
    "pytest>=8.4.1",
    "pytest-asyncio>=1.0.0",
    "pytest-cov>=6.2.1",
    # Code quality
    "black>=25.0.0",
    "flake8>=7.1.0",
    "mypy>=1.13.0",
]

setup(
    name="duckduckresearch",
    version="1.0.0",

    # Package description
    description="MCP server combining DuckDuckGo search with web page visit and screenshot capabilities",
    long_description=long_description,
    long_description_content_type="text/markdown",

    # Package discovery
    packages=find_packages(where="src"),
    package_dir={"": "src"},

    # Python version requirement
    python_requires=">=3.11",

    # Dependencies
    install_requires=core_deps,

    extras_require={
        "test": [
            "pytest>=8.4.1",
            "pytest-asyncio>=1.0.0",
        ],
        "dev": dev_deps,
    },

    entry_points={
        "console_scripts": [
            "duckduckresearch=duckduckresearch.cli:main",
        ],
    },

    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Programming Language :: Python :: 3 :: Only",
        "Topic :: Internet :: WWW/HTTP :: Browsers",
        "Framework :: AsyncIO",
    ],

    keywords=["mcp", "duckduckgo", "web-research", "screenshot", "playwright"],

    license="MIT",

    include_package_data=True,
    zip_safe=False,
)
