from setuptools import setup, find_packages

setup(
    name="crawl-history",
    version="0.1.0",
    description="Success/failure crawl history tracker with pluggable persistence",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.0.0",
        "psycopg2-binary>=2.9.0",
        "tenacity",
        "pymongo>=4.0",
        "PyMySQL>=1.0",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "crawl-history=crawl_history.cli:main",
        ]
    },
)
