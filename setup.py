from setuptools import setup, find_packages

setup(
    name="sovereign_bond_ranker",
    version="0.1.0",
    description="Sovereign bond ranking per investor profile with FX and credit risk adjustment",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy>=1.22",
        "pandas",
        "scipy",
        "requests",
        "PyYAML",
        "lxml",
        "beautifulsoup4",
        "html5lib",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "sovereign-bond-ranker=sovereign_bond_ranker.cli:main",
        ],
    },
    python_requires=">=3.9",
)
