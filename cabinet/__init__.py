"""
Cabinet - Arcade Machine Metadata Curator

Reads MAME community datasets (MAME XML, catver.ini, series.ini, languages.ini,
nplayers.ini, bestgames.ini, history.xml, resource DATs), merges them into a
single machine graph and exports it as JSON, CSV or SQLite.
"""

__version__ = "0.3.0"
__author__ = "jbruns"
