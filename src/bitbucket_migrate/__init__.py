"""Bitbucket Migration Tool

Migrates every repository of a Bitbucket workspace to GitHub, moving large
files into Git LFS and rewriting history where needed.
"""

__version__ = '0.1.0'
__author__ = 'Bitbucket Migration Team'
__email__ = 'team@example.com'
