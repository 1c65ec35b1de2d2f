import setuptools


with open('README.md', 'r') as fh:
    long_description = fh.read()

setuptools.setup(
    name="invite",
    version="0.1.0",
    description="Invite is a small event invitation server with a single-file event store.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(exclude=("tests",)),
    python_requires=">=3.10",
    classifiers=(
        "Programming Language :: Python :: 3",
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
        "Topic :: Office/Business :: Scheduling",
    ),
    install_requires=[
        "cbor2>=5.4",
        "pybase62>=1.0",
        "websockets>=13.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
)
