import os.path

from setuptools import find_packages, setup


def read(fname):
    path = os.path.join(os.path.dirname(__file__), fname)
    with open(path, "r") as rfile:
        return rfile.read()


metadata = {}
exec(read("src/jamfkit/__about__.py"), metadata)


setup(
    name="jamfkit",
    version=metadata["__version__"],
    description=metadata["__description__"],
    license="MIT",
    long_description=read("README.rst") + "\n\n" + read("HISTORY.rst"),
    author=metadata["__author__"],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    install_requires=[
        "requests>=2.25",
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
    ],
    extras_require={
        "httpx": ["httpx>=0.23"],
        "test": ["pytest>=7.0", "pytest-mock>=3.10", "pytest-httpbin>=2.0"],
    },
    keywords=[
        "api-wrapper",
        "jamf",
        "jamf-pro",
        "macos",
        "mdm",
        "rest",
    ],
    python_requires=">=3.8",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
)
