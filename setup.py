from setuptools import (
    find_packages,
    setup,
)

with open("README.md", encoding="utf-8") as readme:
    long_description = readme.read()

setup(
    name="incexpand",
    version="0.1.0",
    description="Expand C #include directives in D sources into extern(C) declarations",
    long_description=long_description,
    long_description_content_type="text/markdown",
    license="MIT",
    python_requires=">=3.10",
    packages=find_packages(include=["incexpand", "incexpand.*"]),
    install_requires=[
        "click",
        "libclang",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "incexpand=incexpand:cli",
        ],
    },
)
