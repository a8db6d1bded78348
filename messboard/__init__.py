"""
Mess Board: community bulletin board for mess menus that expire on their own
"""
__version__ = "0.1.0"
