from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="nphsim",
    version="0.1.0",
    author="nphsim contributors",
    author_email="",
    description="Simulation of two-arm time-to-event trials under non-proportional hazards",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["nphsim.tests"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Intended Audience :: Healthcare Industry",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Scientific/Engineering :: Medical Science Apps.",
    ],
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.21.0",
        "pandas>=1.3.0",
        "scipy>=1.7.0",
        "lifelines>=0.27.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
)
