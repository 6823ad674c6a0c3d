from setuptools import setup, find_packages

setup(
    name="mkdocs-doxter",
    version="0.3.0",
    description="MkDocs plugin generating API reference pages from C doc comments",
    keywords="mkdocs doxter c api documentation python",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "mkdocs>=1.4",
    ],
    extras_require={
        "test": ["pytest"],
    },
    classifiers = [
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Documentation",
        "Topic :: Software Development :: Documentation",
        "Framework :: MkDocs",
    ],
    entry_points={
        "mkdocs.plugins": [
            "doxter = mkdocs_doxter.plugin:DoxterPlugin",
        ],
        "console_scripts": [
            "doxter-dump = mkdocs_doxter.dump:main",
        ],
    },
)
