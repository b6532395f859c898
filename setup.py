from setuptools import setup, find_packages

setup(
    name="subscription-engine",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    include_package_data=True,
    install_requires=[
        "pydantic>=2.0.0",
        "typing_extensions>=4.0.0",
        "numpy>=1.24.0",
        "python-dateutil>=2.8.2",
    ],
    extras_require={
        "dev": [
            "mypy>=1.0.0",
            "types-python-dateutil>=2.8.0",
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "black>=23.0.0",
            "isort>=5.0.0",
            "flake8>=6.0.0"
        ]
    },
    python_requires=">=3.9",
)
