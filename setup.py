"""Setup configuration for blobwatch package."""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README file
readme_file = Path(__file__).parent / "README.md"
long_description = (
    readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""
)

setup(
    name="blobwatch",
    version="1.0.0",
    description="Polling change detection over S3, Azure Blob and local containers, used to trigger jobs for new blobs",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["blob_watch"],
    python_requires=">=3.9",
    install_requires=[
        "azure-core>=1.29.0",
        "azure-identity>=1.15.0",
        "azure-storage-blob>=12.19.0",
        "boto3>=1.26.0",
        "pyyaml>=6.0",
        "tenacity>=8.0.0",  # For poll backoff
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "moto[s3]>=5.0.0",
            "black>=22.0.0",
            "flake8>=5.0.0",
            "mypy>=0.990",
        ],
    },
    entry_points={
        "console_scripts": [
            "blob-watch=blob_watch:main",
        ],
    },
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
    keywords="blob-storage change-detection polling s3 azure-blob triggers watermark",
)
