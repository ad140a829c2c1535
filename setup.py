"""Setup configuration for collab-test tool."""

from setuptools import setup, find_packages

setup(
    name="collab-test",
    version="0.1.0",
    description="Multi-party collaboration test engine",
    packages=find_packages(include=["collab_test", "collab_test.*"], exclude=["*.unittests"]),
    python_requires=">=3.10",
    install_requires=[
        "pyyaml>=6.0",
        "click>=8.1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "collab-test=collab_test.cli:main",
        ],
    },
)
