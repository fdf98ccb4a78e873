"""
Setup script for vidrecall package
"""

from setuptools import find_packages, setup


with open("requirements.txt") as f:
    requirements = [line.strip() for line in f if line.strip() and not line.startswith("#")]

setup(
    name="vidrecall",
    version="0.1.0",
    description="Hybrid vector + keyword retrieval over video transcripts",
    author="Taylor Paul",
    author_email="tpaul733@gmail.com",
    packages=find_packages(include=["vidrecall", "vidrecall.*"]),
    python_requires=">=3.10",
    install_requires=requirements,
    extras_require={
        "sbert": ["sentence-transformers>=2.2"],
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
            "pytest-mock>=3.12",
            "freezegun>=1.4",
            "httpx>=0.25",
        ],
    },
    entry_points={
        "console_scripts": [
            "vidrecall=vidrecall.cli:app",
        ],
    },
    include_package_data=True,
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
