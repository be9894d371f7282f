"""
SkillSwap - Skill exchange partner matching with semantic similarity scoring.

A local library and command-line tool that:
- Loads profiles of people who offer one skill and want to learn another
- Scores candidate partners on skill fit, location, language and trust
- Ranks and exports the best matches with a full score breakdown
"""

__version__ = "0.1.0"
