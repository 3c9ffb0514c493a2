"""
Marks "keyshift" as a proper Python package.

Run the server from the project root:

    uvicorn keyshift.app:app --reload
"""

__version__ = "1.1.0"
