# setup.py
from setuptools import setup, find_packages

setup(
    name="balanced-split",
    version="0.1.0",
    description="Resumable balanced split of every shard in a range-sharded table",
    python_requires=">=3.9",
    package_dir={"": "src"},
    packages=find_packages("src"),
    install_requires=[
        "requests",
        "setproctitle",
        "tqdm",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "balanced-split=balanced_split.cli:main",
        ],
    },
)
