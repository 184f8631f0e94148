# setup.py
from setuptools import setup, find_packages

setup(
    name="kg_viewer",
    version="0.1.0",
    description="Interactive knowledge-graph visualisation engine: encodings, layout sessions, filtering and export",
    author="Swift Fox",
    packages=find_packages(
        exclude=(
            "tests",
            "tests.*",
            "docs",
            "build",
            "dist",
        )
    ),
    install_requires=[
        "numpy",
        "networkx>=3.0",
        "matplotlib",
    ],
    extras_require={
        "test": ["pytest"],
    },
    python_requires=">=3.10",
)
