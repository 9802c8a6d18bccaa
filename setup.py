import os.path

import setuptools
import codecs


def read(rel_path):
    here = os.path.abspath(os.path.dirname(__file__))
    with codecs.open(os.path.join(here, rel_path), 'r') as fp:
        return fp.read()

def get_string(string, rel_path="src/stepreport/__init__.py"):
    for line in read(rel_path).splitlines():
        if line.startswith(string):
            delim = '"' if '"' in line else "'"
            return line.split(delim)[1]
    else:
        raise RuntimeError(f"Unable to find {string}.")

long_description = read("README.md")

setuptools.setup(
    name="stepreport",
    python_requires=">=3.8",
    version=get_string("__version__"),
    description="Exploratory report of personal activity monitoring data (steps per 5-minute interval)",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author=get_string("__author__"),
    maintainer=get_string("__maintainer__"),
    maintainer_email=get_string("__maintainer_email__"),
    license=get_string("__license__"),
    classifiers=[
        "Programming Language :: Python :: 3",
        "Topic :: Scientific/Engineering",
        "Topic :: Scientific/Engineering :: Information Analysis",
        "Topic :: Scientific/Engineering :: Visualization",
    ],
    packages=setuptools.find_packages(where="src", exclude=("test", "tests")),
    package_dir={"": "src"},
    include_package_data=False,
    install_requires=[
        "numpy>=1.24",
        "pandas>=2.0",
        "matplotlib>=3.6",
        "tqdm>=4.64",
    ],
    extras_require={
        "dev": [
            "flake8",
            "autopep8",
            "ipython",
            "ipdb",
            "twine",
            "jupyter",
        ],
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "stepreport=stepreport.stepreport:main",
        ]
    }
)
