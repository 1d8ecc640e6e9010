"""
Story Engine - runtime services for narrative games.

Modules:
- core: Event bus, configuration
- audio: Audio sink interface and pygame mixer backend
- resources: Story content database with JSON schema validation
"""

__version__ = "0.1.0"
