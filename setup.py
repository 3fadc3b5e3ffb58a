#!/usr/bin/env python
from setuptools import setup, find_packages

setup(
    name="fleet-drift",
    version="0.1.0",
    description="Repository fingerprint extraction and convergence across a fleet",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.10",
    install_requires=[
        # Configuration
        "pydantic>=2.7.0",
        "pydantic-settings>=2.3.0",
        "python-dotenv>=1.0.1",

        # Logging and tracing
        "structlog>=24.1.0",
        "opentelemetry-api>=1.25.0",
        "opentelemetry-sdk>=1.25.0",

        # HTTP
        "httpx>=0.27.0",
        "tenacity>=8.3.0",

        # Git
        "dulwich>=0.22.0",

        # API framework
        "fastapi>=0.111.0",
        "uvicorn>=0.30.0",
    ],
    extras_require={
        "dev": [
            "pytest>=8.1.0",
            "pytest-asyncio>=0.24.0",
        ],
        "test": [
            "pytest>=8.1.0",
            "pytest-asyncio>=0.24.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "fleet-drift-serve=fleet_drift.main:run",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
