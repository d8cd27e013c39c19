'''Daily verse generator: deterministic pick, suitability gate, pastoral context, atomic archive.'''

__version__ = "1.0.0"
