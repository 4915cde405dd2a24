"""
Multitemporal Composites Executable Scripts

Command-line entry points for the compositing workflow.

Scripts:
    run_composites.py: Build and export the index, reflectance and radar composites

Usage Examples:
    python -m multitemporal_composites.scripts.run_composites --config custom_config.yml

Author: Diego Bengochea
"""

from .run_composites import main as run_composites

__all__ = [
    "run_composites"
]
