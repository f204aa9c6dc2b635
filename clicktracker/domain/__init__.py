"""Domain Layer: models, errors, events and the interfaces (ports) the
infrastructure layer implements.
"""
