from setuptools import setup, find_packages

setup(
    name="yap-pm",
    version="0.1.0",
    description="Multi-distribution package build orchestrator driven by recipes.",
    author="Seu Nome",
    license="GPL-3.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10.12",
    install_requires=[
        "rich>=13.0.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "yap=yap.modules.cli:main",
        ],
    },
)
