"""Package setup for quant-cloud-cli."""

from setuptools import setup, find_packages

setup(
    name="quant-cloud-cli",
    version="0.1.0",
    description="Command line access to the Quant Cloud platforms",
    packages=find_packages(include=["quant_cli", "quant_cli.*", "quant_sdk", "quant_sdk.*"]),
    python_requires=">=3.9",
    install_requires=[
        "typer>=0.9.0",
        "rich>=13.0.0",
        "httpx>=0.24.0",
        "pydantic>=2.0.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "test": ["pytest>=7.0.0", "fastapi>=0.100.0"],
    },
    entry_points={
        "console_scripts": [
            "quant-cloud=quant_cli.cli:main",
            "qc=quant_cli.cli:main",
        ],
    },
)
