"""
hsmsigner Test Suite

Test organization:
- unit/: Unit tests for individual modules
- property/: Property-based tests using Hypothesis
- fakes.py: In-memory channels for driving the exchange without sockets
"""
