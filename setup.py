from setuptools import setup, find_packages

setup(
    name="headless_fetch",
    version="0.1.0",
    description="Headless browser fetch client for web crawlers",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    author="Headless Fetch Team",
    packages=find_packages(include=["headless_fetch", "headless_fetch.*"]),
    install_requires=[
        "playwright>=1.44.0",
        "validators>=0.22.0",
        "tqdm>=4.66.1",
        "jsonschema>=4.20.0",
        "PyYAML>=6.0.1"
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
            "black>=23.7.0",
            "isort>=5.12.0",
            "flake8>=6.1.0",
            "mypy>=1.5.1",
            "types-PyYAML>=6.0.12",
            "types-jsonschema>=4.20.0",
        ]
    },
    entry_points={
        'console_scripts': [
            'headless-fetch=headless_fetch.main:main',
        ],
    },
    python_requires=">=3.10",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Framework :: AsyncIO",
        "Topic :: Internet :: WWW/HTTP :: Indexing/Search",
        "Topic :: Software Development :: Libraries :: Python Modules"
    ],
)
