"""
Semantic edit engine.

Modules, in pipeline order:
- locator: selector -> candidate nodes
- disambiguator: candidates -> one candidate (or Ambiguous / NotFound)
- position: candidate + operation kind -> UTF-8 aligned byte span
- validator: context rules, then syntax re-parse
- diff: preview and final diffs
- engine: staged-operation state machine and revision-guarded commit
"""
