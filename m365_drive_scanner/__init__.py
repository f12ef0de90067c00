"""
M365 Drive Scanner
==================
Walks a SharePoint / OneDrive document library through Microsoft Graph,
bounded by a folder depth limit, and exports every file together with the
bytes held by each folder.

The scanner is READ-ONLY: every request is checked before it is sent.
"""

__version__ = "1.0.0"
__mode__ = "READ-ONLY"
