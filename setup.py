"""
Land Record Ledger: a tamper-evident ledger of land ownership records

The ledger keeps an append-only, hash-linked chain of land-title blocks and
transfers parcels between account holders, moving ownership and credit in one
atomic step.
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh.readlines() if line.strip() and not line.startswith("#")]

# Get version from the package
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '.'))
from landledger.units.version import get_version
from landledger import VERSION

setup(
    name="landledger",
    version=get_version(VERSION),
    author="Nguyễn Lê Văn Dũng",
    description="A tamper-evident land record ledger with atomic ownership transfers",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=['landledger', 'landledger.*'], exclude=['tests*']),
    install_requires=requirements,
    extras_require={
        "test": [
            "pytest>=7.4",
            "hypothesis>=6.90",
        ],
    },
    entry_points={
        "console_scripts": [
            "landledger=landledger.cli:cli",
        ],
    },
    python_requires=">=3.10",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Database",
        "License :: OSI Approved :: Apache Software License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
    keywords="blockchain, ledger, land registry, hash chain",
)
