import os
from setuptools import setup, find_packages

# Read version from version.txt
base_dir = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(base_dir, 'version.txt'), 'r') as f:
    version = f.read().strip()

setup(
    name="anime_tracker",
    version=version,
    description="Anime RSS tracker that sends new episodes to a download client",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["main", "logging_config", "api_tracker"],
    python_requires=">=3.9",
    install_requires=[
        "requests",
        "feedparser",
        "APScheduler>=3.9,<4",
        "tzlocal",
        "appdirs",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "anime-tracker=main:main",
        ],
    },
)
