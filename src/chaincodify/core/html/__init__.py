"""
Markup Support.

Locates the script elements of a node's companion ``.html`` document so the
registration rewriter can edit them in place.
"""

from chaincodify.core.html.scripts import ScriptAttribute, ScriptElement, find_scripts, splice

__all__ = ["ScriptAttribute", "ScriptElement", "find_scripts", "splice"]
