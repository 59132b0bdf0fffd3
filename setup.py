"""Setup configuration for Tenderly."""

from setuptools import find_packages, setup

setup(
    name="tenderly",
    version="0.1.0",
    packages=find_packages(include=["tenderly", "tenderly.*"]),
    package_dir={"": "."},
    python_requires=">=3.9",
    install_requires=[
        "boto3>=1.28",
        "botocore>=1.31",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
)
