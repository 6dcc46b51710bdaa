"""Background services used by the launcher window.

This package contains:
- bridge.py: host-facing facade over the browser controller
- workers.py: QRunnable task classes for launch and profile reset
"""
