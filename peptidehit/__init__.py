#!python


__project__ = "peptidehit"
__version__ = "0.3.1"
__license__ = "Apache"
__description__ = "Normalize peptide identification results of database search engines into a canonical tab-delimited schema"
__author__ = "Mann Labs"
__author_email__ = "opensource@alphapept.com"
__github__ = "https://github.com/MannLabs/peptidehit"
__keywords__ = [
    "bioinformatics",
    "proteomics",
    "mass spectrometry",
    "AlphaPept ecosystem",
]
__python_version__ = ">=3.10"
__classifiers__ = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "License :: OSI Approved :: Apache Software License",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Topic :: Scientific/Engineering :: Bio-Informatics",
]
__console_scripts__ = [
    "peptidehit=peptidehit.cli:run",
]
__urls__ = {
    "Mann Labs at MPIB": "https://www.biochem.mpg.de/mann",
    "GitHub": __github__,
}
