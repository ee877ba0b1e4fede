"""daylist: rule-driven playlist curation for Subsonic-compatible music servers."""

__version__ = "0.3.0"
