from setuptools import setup, find_packages

setup(
    name="forward_curve_engine",
    version="0.1.0",
    description="Piecewise flat forward curve bootstrapping and valuation",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy",
        "pandas",
    ],
    extras_require={
        "test": [
            "pytest",
            "scipy",
        ],
    },
    python_requires=">=3.8",
)
