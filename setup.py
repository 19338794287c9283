"""Setup module for ezsp-backup"""

import pathlib

from setuptools import find_packages, setup

import ezsp_backup

REQUIRES = [
    "attrs",
    "typing_extensions",
    "voluptuous",
]

setup(
    name="ezsp-backup",
    version=ezsp_backup.__version__,
    description="Capture and validate EZSP Zigbee coordinator network backups",
    long_description=(pathlib.Path(__file__).parent / "README.md").read_text(),
    long_description_content_type="text/markdown",
    license="GPL-3.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=REQUIRES,
    extras_require={
        "testing": [
            "pytest",
            "pytest-asyncio",
        ],
    },
    python_requires=">=3.11",
)
