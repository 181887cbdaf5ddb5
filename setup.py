#!/usr/bin/env python3
"""
Setup script for the VaultVerse security core.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text() if readme_file.exists() else ""

setup(
    name="vaultverse-core",
    version="1.0.0",
    description="Encryption, session tokens, lockout and encrypted backups for a credential vault",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="VaultVerse Contributors",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "python-dotenv>=1.0.0",
        "cryptography>=41.0.0",
        "argon2-cffi>=23.1.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Security :: Cryptography",
    ],
    keywords="password vault encryption argon2 session tokens",
)
