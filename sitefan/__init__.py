"""
sitefan: fan one drush command out over every site of a site factory.
"""

__version__ = "0.1.0"
