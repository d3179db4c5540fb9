"""
changeup

Focus history tracking for Sway: jump back to the previously focused window,
focus a window by application id, or run a focus-or-launch rule.
"""

__version__ = "0.4.0"
