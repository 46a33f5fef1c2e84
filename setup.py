from setuptools import setup, find_packages

setup(
    name="ytm_engine",
    version="0.1.0",
    description="Bond yield-to-maturity estimators compared against Newton-Raphson",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy",
        "pandas",
        "scipy",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": ["ytm-engine=ytm_engine.cli:main"],
    },
    python_requires=">=3.8",
)
