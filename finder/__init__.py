"""Finds recipes for free-text requests. Centres around the `SearchOrchestrator`.

Why is this hard?

- Understanding "I like chicken but not cheese" needs a language model.
  That model runs locally, is slow, and is sometimes down or out of memory.
- Its answers are text. Sometimes the JSON is broken, sometimes there is none.
- Users should get recipes anyway.

So the model is one strategy among several. Simple queries never see it, a
model that keeps failing is skipped for a while, and anything it cannot answer
falls back to keywords and the glossary.
"""
