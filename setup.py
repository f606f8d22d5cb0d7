"""
TodoHub setup.py — Package configuration and CLI entry point.
"""

from setuptools import find_packages, setup

setup(
    name="todohub",
    version="1.0.0",
    description="TodoHub — Task list service with real-time broadcast, charts and Excel export",
    packages=find_packages(include=["todohub", "todohub.*"]),
    python_requires=">=3.11",
    entry_points={
        "console_scripts": [
            "todohub=todohub.cli:main",
        ],
    },
    install_requires=[
        "sqlalchemy>=2.0",
        "pydantic>=2.5",
        "pyyaml>=6.0",
        "fastapi>=0.110",
        "uvicorn>=0.27",
        "openpyxl>=3.1",
        "httpx>=0.27",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
        ],
    },
)
