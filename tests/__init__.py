"""
Test suite for the covered-call AMM engine

Contains:
- tests/unit/          : Unit tests for math, domain models, contracts and the engine
"""
