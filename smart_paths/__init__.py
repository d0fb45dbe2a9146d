"""
Smart Paths
===========

Natural-language folder resolution with a live, debounced directory cache.

Features:
- Resolve phrases like "다운로드" or "카카오톡 받은 파일" to real folders
- Platform-aware alias table (Windows, macOS, Linux, WSL)
- Learned per-user preferences from explicit corrections
- Watched directory listings refreshed on filesystem events

Everything runs locally against the user's own filesystem.
"""

__version__ = "0.1.0"
