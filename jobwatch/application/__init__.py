"""Application layer.

This layer contains *use cases* (application services) that orchestrate the
engine, the push channel and the REST client to fulfil an operator intent.

Rule of thumb:
display -> application.use_cases / monitor -> core + services
"""
