"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/__init__.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Core package for PaperMind. Contains document intake,
                AI enrichment, matching rules, relations, signing and
                persistence modules.
------------------------------------------------------------------------------
"""

__version__ = "1.0.0"
