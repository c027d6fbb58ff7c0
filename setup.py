from setuptools import setup, find_packages

setup(
    name="teraslice-exporter",
    version="1.0.0",
    description="Prometheus exporter for Teraslice cluster statistics",
    packages=find_packages(exclude=["tests", "tests.*", "examples"]),
    install_requires=[
        "prometheus-client>=0.16.0",
        "structlog>=23.1.0",
        "python-json-logger>=2.0.7",
        "requests>=2.31.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "teraslice-exporter=teraslice_exporter.main:main",
        ],
    },
    python_requires=">=3.8",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
