# setup.py
from setuptools import setup, find_packages

setup(
    name="fishbone",
    version="0.1.0",
    description="Association rule mining with significance and relative entropy filters",
    packages=find_packages(where="src"),        # automatically finds your modules
    package_dir={"": "src"},
    install_requires=[
        "numpy>=1.24",
        "pandas>=2.0",
        "scipy>=1.10",
        "rich>=13.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "fishbone=fishbone.runner:main",
        ],
    },
    python_requires=">=3.9",
    include_package_data=True,
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
