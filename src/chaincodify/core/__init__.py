"""
Core Package.

Contains the conversion pipeline:
- Syntax trees and source formatting
- Extraction, rewriting and alias resolution passes
- Contract skeletons, registration rewriting and serialization
- The per-module `ConversionEngine`
"""
