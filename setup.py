"""Setup configuration for switchboard."""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="switchboard-gateway",
    version="0.1.0",
    description="Tool server orchestration and multi-provider model routing",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["switchboard", "switchboard.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries",
    ],
    python_requires=">=3.10",
    install_requires=[
        "click>=8.0",
        "rich>=13.0",
        "pyyaml>=6.0",
        "httpx>=0.27",
        "mcp>=1.9,<2",
        "anyio>=4.5",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "switchboard=switchboard.cli:main",
        ],
    },
)
