"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (the CRM API, configuration,
the console) by implementing the interfaces defined in the domain layer.
"""
