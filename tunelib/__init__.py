"""
tunelib - alternative sample tunings for the sample engine.
"""
