"""
Static data loading.
"""

from storyengine.resources.database import ContentDatabase

__all__ = ["ContentDatabase"]
