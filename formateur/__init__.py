"""
Formateur

Grounded question answering over a fixed training corpus.

Philosophy:
- Every assertion in an answer traces to a verbatim quote from the corpus
- Refuse or hedge when the corpus does not explicitly cover the question
- No generalization across semantically adjacent categories
- Stateless per request: history is supplied by the caller every time

Usage:
    from formateur.common import load_config
    from formateur.answering import build_pipeline

    pipeline = build_pipeline(load_config())
    result = await pipeline.ask("Quelle est la surface minimum pour 3 personnes ?")
"""

__version__ = "0.1.0"
