from pathlib import Path
from setuptools import setup, find_packages


def read_readme() -> str:
    readme_path = Path(__file__).resolve().parent / "README.md"
    return readme_path.read_text(encoding="utf-8") if readme_path.exists() else ""


setup(
    name="savecrypt",
    version="1.0.0",
    packages=find_packages(exclude=["tests", "tests.*", "debug", "debug.*"]),
    install_requires=[
        "numpy>=1.24.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": ["savecrypt=savecrypt.cli:main"],
    },
    python_requires=">=3.10",
    description="Save file cipher and validation pipeline for Sheltered 2 saves",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
)
