# Configuration file for the Sphinx documentation builder.
#
# For the full list of built-in configuration values, see the documentation:
# https://www.sphinx-doc.org/en/master/usage/configuration.html

# -- Project information -----------------------------------------------------

project = 'torch-csc'
release = '0.1.0'

# -- General configuration ---------------------------------------------------

extensions = [
    'sphinx.ext.autodoc',
    'sphinx.ext.napoleon',
    'sphinx.ext.viewcode',
]
import os
import sys
sys.path.insert(0, os.path.abspath('../../'))

templates_path = ['_templates']

# -- Options for HTML output -------------------------------------------------
html_theme = 'furo'
exclude_patterns = ['setup.py','__init__.py']
autodoc_member_order = 'bysource'
